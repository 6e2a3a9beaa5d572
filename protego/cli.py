import functools
import logging
import os.path
import pathlib
import typing

import click

from . import __doc__, __version__
from .errors import EditorFailed, GPGError, NoChanges, SecretExists, Unimplemented
from .gpg import GPG
from .keys import DEFAULT_KEYSERVER, Keyserver, refresh as refresh_keys
from .secrets import PLACEHOLDER, Secret, SecretKeeper, inject
from .trust import TrustConfig, default_config_path, load_roster
from .utils import find_editor

log = logging.getLogger(__name__)

# Commands that run without reading the roster.
UNTRUSTED_COMMANDS = ('version', 'ls')


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def styled(secret: Secret) -> str:
    return click.style(rel(secret.path), fg='green')


def edit_text(text: str) -> typing.Optional[str]:
    """Edit text in a private temporary file that is always removed."""
    editor = find_editor()
    try:
        return click.edit(
            text=text,
            editor=editor,
            extension='.txt',
            require_save=True)
    except click.ClickException as error:
        raise EditorFailed(error.format_message()) from error


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


secret_argument = click.argument(
    'path',
    type=PathType(exists=True, dir_okay=False),
    required=True)


@click.group(help=__doc__)
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=pathlib.Path.cwd,
    required=True,
    help="Directory holding the roster. Defaults to the current directory.")
@click.option(
    '-c', '--config',
    type=PathType(dir_okay=False),
    envvar='PROTEGO_CONFIG',
    default=default_config_path,
    help="File listing the trusted signers for each directory.")
@click.option(
    '--strict-roster',
    default=False,
    is_flag=True,
    help="Reject blank and comment lines in the roster.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Display GPG's normal STDERR output.")
@click.pass_context
def main(
        ctx,
        path: pathlib.Path,
        config: pathlib.Path,
        strict_roster: bool,
        debug: bool,
        gpg_verbose: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if ctx.invoked_subcommand in UNTRUSTED_COMMANDS:
        return

    gpg = GPG(verbose=gpg_verbose)
    roster = load_roster(
        path,
        TrustConfig.load(config),
        gpg,
        skip_comments=not strict_roster)
    ctx.obj = SecretKeeper(roster=roster, gpg=gpg)


@main.command()
def version():
    """Show the application version."""
    click.echo(f"protego {__version__}")


@main.command()
@click.argument('path', type=PathType(), required=False)
def ls(path: typing.Optional[pathlib.Path]):
    """List secrets and who can read them (not implemented)."""
    raise Unimplemented('ls')


@main.command()
@click.argument('path', type=PathType(dir_okay=False), required=True)
@click.pass_obj
def add(sk: SecretKeeper, path: pathlib.Path):
    """
    Create a new encrypted secret in your $EDITOR.

    Replace FIXME on the first line with the users and @groups who should be
    able to read the secret.
    """
    secret = sk[path]
    if secret.exists():
        raise SecretExists(path)

    sk.add(secret, edit_text(inject(PLACEHOLDER)))
    click.echo(f"Encrypted {styled(secret)}")


@main.command()
@click.argument(
    'secrets',
    type=PathType(exists=True, dir_okay=False),
    required=True,
    nargs=-1)
@click.pass_obj
def cat(sk: SecretKeeper, secrets: typing.Sequence[pathlib.Path]):
    """Print the contents of encrypted secrets."""
    for path in secrets:
        click.echo(sk.contents(sk[path]), nl=False)


@main.command()
@secret_argument
@click.pass_obj
def decrypt(sk: SecretKeeper, path: pathlib.Path):
    """Replace an encrypted secret with its plaintext."""
    secret = sk[path]
    sk.decrypt(secret)
    click.secho(
        f"Plaintext of {rel(secret.path)} is now on disk - "
        f"run 'protego enc {rel(secret.path)}' to encrypt it again",
        fg='yellow')


@main.command()
@secret_argument
@click.pass_obj
def enc(sk: SecretKeeper, path: pathlib.Path):
    """
    Encrypt a secret for the readers named on its first line.

    Encrypted secrets are decrypted and encrypted again, which is how changes
    to the roster are applied to existing secrets.
    """
    secret = sk[path]
    sk.re_encrypt(secret)
    click.echo(f"Encrypted {styled(secret)}")


@main.command()
@secret_argument
@click.pass_obj
def edit(sk: SecretKeeper, path: pathlib.Path):
    """Edit an encrypted secret without creating decrypted plaintext."""
    secret = sk[path]

    old_text = sk.contents(secret)
    new_text = edit_text(old_text)

    if new_text is None or new_text == old_text:
        raise NoChanges()

    sk.seal(secret, new_text)
    click.echo(f"Encrypted {styled(secret)}")


main.add_command(edit, name='mod')


@main.group()
def keys():
    """Inspect and fetch the public keys named in the roster."""


@keys.command()
@click.pass_obj
def display(sk: SecretKeeper):
    """List users with their keys, and groups with their members."""
    for user in sk.roster:
        if sk.gpg.has_key(user.key_id):
            status = click.style('present', fg='green')
        else:
            status = click.style('missing', fg='red')
        click.echo(f"{user.name} {user.key_id} {status}")

    for group in sorted(sk.roster.groups.values(), key=lambda g: g.name):
        click.echo(f"{group.name} = {', '.join(group.members)}")


@keys.command()
@click.option(
    '--keyserver',
    envvar='PROTEGO_KEYSERVER',
    default=DEFAULT_KEYSERVER,
    show_default=True,
    help="Keyserver implementing the VKS interface.")
@click.pass_obj
def refresh(sk: SecretKeeper, keyserver: str):
    """Import the key of every user in the roster from a keyserver."""
    result = refresh_keys(sk.roster, sk.gpg, Keyserver(keyserver))
    click.echo(f"Imported {len(result.imported)} keys from {keyserver}")

    if result.unpublished:
        click.secho(
            f"Not published on {keyserver}: {', '.join(result.unpublished)}",
            fg='yellow')

    if result.rejected:
        raise GPGError(f"gpg did not import: {', '.join(result.rejected)}")
