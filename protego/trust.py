"""
Decides which roster to believe.

Each directory holding secrets is listed in the trusted-signer file with the
fingerprints allowed to sign its '.users' roster:

    # directory = fingerprints
    /srv/secrets = 0123456789ABCDEF0123456789ABCDEF01234567
"""

import logging
import pathlib
import re
import typing

import attr
import click

from .errors import (
    ConfigurationError,
    ScopeNotTrusted,
    UntrustedOrInvalidSignature,
)
from .gpg import Verifier
from .roster import Roster, tokens

log = logging.getLogger(__name__)

ROSTER_NAME = '.users'
SCOPE_LINE = re.compile(r'^(\S+)\s*=\s*(.*)$')
FINGERPRINT = re.compile(r'^[0-9A-Fa-f]{40}$')


def default_config_path() -> pathlib.Path:
    return pathlib.Path(click.get_app_dir('protego')) / 'trusted-signers'


@attr.s(frozen=True)
class TrustConfig:
    scopes: typing.Dict[pathlib.Path, typing.FrozenSet[str]] = attr.ib(factory=dict)

    @classmethod
    def load(cls, path: pathlib.Path) -> 'TrustConfig':
        log.debug(f"Reading trusted signers from {path}")
        try:
            text = path.read_bytes().decode('utf-8')
        except OSError as error:
            raise ConfigurationError(
                f"Could not read trusted signers from {path}: {error.strerror}")
        except UnicodeDecodeError:
            raise ConfigurationError(f"{path} is not UTF-8 text") from None
        return cls.parse(text)

    @classmethod
    def parse(cls, text: str) -> 'TrustConfig':
        scopes: typing.Dict[pathlib.Path, typing.FrozenSet[str]] = {}

        for number, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            match = SCOPE_LINE.match(line)
            if not match:
                raise ConfigurationError(f"Malformed trusted signers line {number}")

            directory = pathlib.Path(match.group(1))
            if not directory.is_absolute():
                raise ConfigurationError(
                    f"Trusted signers line {number} is not an absolute path")
            if directory.resolve() in scopes:
                raise ConfigurationError(
                    f"Trusted signers line {number} repeats {directory}")

            fingerprints = tokens(match.group(2))
            invalid = [f for f in fingerprints if not FINGERPRINT.match(f)]
            if invalid or not fingerprints:
                raise ConfigurationError(
                    f"Trusted signers line {number} must list 40 character "
                    f"fingerprints")

            scopes[directory.resolve()] = frozenset(f.upper() for f in fingerprints)

        return cls(scopes=scopes)

    def signers(self, directory: pathlib.Path) -> typing.FrozenSet[str]:
        """Fingerprints trusted to sign the roster of a directory."""
        try:
            return self.scopes[directory.resolve()]
        except KeyError:
            raise ScopeNotTrusted(directory) from None


def verified_content(
        text: str,
        trusted: typing.AbstractSet[str],
        verifier: Verifier,
        source: typing.Any = ROSTER_NAME) -> str:
    """
    Return the signed content of a document.

    One valid signature from a trusted fingerprint is enough, any other
    signatures are ignored.
    """
    verification = verifier.verify(text)
    trusted = {t.upper() for t in trusted}

    for signature in verification.signatures:
        if signature.valid and signature.fingerprint in trusted:
            log.info(f"{source} is signed by {signature.fingerprint}")
            return verification.content

    raise UntrustedOrInvalidSignature(source)


def load_roster(
        directory: pathlib.Path,
        config: TrustConfig,
        verifier: Verifier,
        skip_comments: bool = True) -> Roster:
    """Verify and parse the roster for a directory."""
    trusted = config.signers(directory)
    path = directory / ROSTER_NAME

    try:
        text = path.read_bytes().decode('utf-8')
    except OSError as error:
        raise ConfigurationError(f"Could not read roster {path}: {error.strerror}")
    except UnicodeDecodeError:
        raise ConfigurationError(f"Roster {path} is not UTF-8 text") from None

    return Roster.parse(
        verified_content(text, trusted, verifier, source=path),
        skip_comments=skip_comments)
