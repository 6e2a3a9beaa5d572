import json
import pathlib
import typing

import attr
import click.testing
import pytest

import protego.cli
from protego.gpg import Signature, Verification
from protego.roster import Roster
from protego.utils import ARMOUR_HEADER

ALICE = 'A' * 40
BOB = 'B' * 40
CAROL = 'C' * 40
SIGNER = 'D' * 40
STRANGER = 'E' * 40

ROSTER = f"""
# people
alice = {ALICE}
bob = {BOB.lower()}
carol = {CAROL}

@team = alice, bob
@all = @team carol alice
@nobody =
"""


def sign(content: str, *signatures: typing.Tuple[str, bool]) -> str:
    """Prefix content with the signatures FakeGPG.verify reports."""
    header = ''.join(
        f"SIGNATURE {fingerprint} {'good' if valid else 'bad'}\n"
        for fingerprint, valid in signatures)
    return header + content


@attr.s
class FakeGPG:
    """Stands in for the gpg binary, keeping its keyring in a set."""
    keys: typing.Set[str] = attr.ib(factory=lambda: {ALICE, BOB, CAROL})
    encrypted: typing.List[typing.Tuple[str, typing.Tuple[str, ...]]] = attr.ib(factory=list)

    def verify(self, text: str) -> Verification:
        signatures = []
        lines = text.splitlines(keepends=True)
        while lines and lines[0].startswith('SIGNATURE '):
            _, fingerprint, status = lines.pop(0).split()
            signatures.append(Signature(status == 'good', fingerprint))
        return Verification(''.join(lines), signatures)

    def encrypt(self, text: str, recipients: typing.Iterable[str]) -> str:
        recipients = tuple(recipients)
        self.encrypted.append((text, recipients))
        body = json.dumps({'recipients': recipients, 'text': text})
        return f"{ARMOUR_HEADER}\n{body}\n-----END PGP MESSAGE-----\n"

    def decrypt(self, text: str) -> str:
        return json.loads(text.splitlines()[1])['text']

    def recipients(self, text: str) -> typing.List[str]:
        return json.loads(text.splitlines()[1])['recipients']

    def has_key(self, fingerprint: str) -> bool:
        return fingerprint.upper() in self.keys

    def import_key(self, material: str) -> bool:
        if not material.startswith('KEY '):
            return False
        self.keys.add(material.split()[1])
        return True


@pytest.fixture()
def roster() -> Roster:
    return Roster.parse(ROSTER)


@pytest.fixture()
def gpg() -> FakeGPG:
    return FakeGPG()


@pytest.fixture()
def workspace(tmp_path: pathlib.Path) -> pathlib.Path:
    """A directory with a signed roster, trusted by a config file beside it."""
    directory = tmp_path / 'secrets'
    directory.mkdir()
    (directory / '.users').write_text(sign(ROSTER, (SIGNER, True)))
    (tmp_path / 'trusted-signers').write_text(f"{directory} = {SIGNER}\n")
    return directory


@pytest.fixture()
def invoke(monkeypatch, workspace: pathlib.Path, gpg: FakeGPG):
    monkeypatch.setattr(protego.cli, 'GPG', lambda verbose=False: gpg)
    config = workspace.parent / 'trusted-signers'

    def invoke_func(arguments: typing.Sequence[str]) -> click.testing.Result:
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(
            protego.cli.main,
            ['-p', workspace.as_posix(), '-c', config.as_posix(), *arguments])

    return invoke_func


@pytest.fixture()
def editor(monkeypatch):
    """Replace the editor with a function of the text it was given."""
    edits: typing.List[str] = []

    def install(change: typing.Callable[[str], typing.Optional[str]]):
        def fake_edit(text=None, editor=None, extension='.txt', require_save=True, **kwargs):
            edits.append(text)
            return change(text)

        monkeypatch.setattr(protego.cli, 'find_editor', lambda: 'true')
        monkeypatch.setattr(click, 'edit', fake_edit)
        return edits

    return install
