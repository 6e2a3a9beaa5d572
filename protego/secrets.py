import logging
import pathlib
import typing

import attr

from .errors import (
    EmptyContent,
    MissingKeysForRecipients,
    MissingOrEmptyAccessLine,
    NoRecipients,
    NotEncrypted,
    NotText,
    SecretExists,
)
from .gpg import Encrypter, KeyLookup
from .roster import Roster
from .utils import is_encrypted

log = logging.getLogger(__name__)

ACCESS_PREFIX = 'access: '
PLACEHOLDER = 'FIXME'


def extract(content: str) -> str:
    """Read the access expression from the first line of a secret."""
    first = content.split('\n', 1)[0].rstrip('\r')
    if not first.startswith(ACCESS_PREFIX):
        raise MissingOrEmptyAccessLine()

    expression = first[len(ACCESS_PREFIX):]
    if not expression.strip():
        raise MissingOrEmptyAccessLine()
    return expression


def inject(expression: str, body: str = '') -> str:
    """Build the content of a secret from an access expression and a body."""
    return f"{ACCESS_PREFIX}{expression}\n{body}"


def prepare_for_encryption(
        content: typing.Optional[str],
        roster: Roster,
        keys: KeyLookup) -> typing.Tuple[str, typing.FrozenSet[str]]:
    """
    Work out who a secret is for and check they can all read it.

    Every recipient is checked before returning, so content is never
    encrypted for only part of its audience.
    """
    if not content:
        raise EmptyContent()

    expression = extract(content)
    recipients = roster.resolve(expression)
    if not recipients:
        raise NoRecipients(expression)

    missing = {key_id: roster.names_for(key_id)
               for key_id in sorted(recipients) if not keys.has_key(key_id)}
    if missing:
        raise MissingKeysForRecipients(missing)

    return content, recipients


def seal(content: typing.Optional[str], roster: Roster, gpg: Encrypter) -> str:
    """Encrypt a secret for the recipients named in its access line."""
    content, recipients = prepare_for_encryption(content, roster, gpg)
    return gpg.encrypt(content, sorted(recipients))


@attr.s(frozen=True)
class Secret:
    path: pathlib.Path = attr.ib()

    def __str__(self):
        return self.path.name

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> str:
        log.debug(f"Reading contents of {self.path}")
        try:
            return self.path.read_bytes().decode('utf-8')
        except UnicodeDecodeError:
            raise NotText(self.path) from None

    def write(self, text: str) -> None:
        log.debug(f"Writing {self.path}")
        self.path.write_text(text)


@attr.s(frozen=True)
class SecretKeeper:
    roster: Roster = attr.ib()
    gpg: Encrypter = attr.ib()

    def __getitem__(self, item: pathlib.Path) -> Secret:
        return Secret(item)

    def contents(self, secret: Secret) -> str:
        """Decrypt a secret without writing the plaintext anywhere."""
        text = secret.read()
        if not is_encrypted(text):
            raise NotEncrypted(secret.path)
        return self.gpg.decrypt(text)

    def seal(self, secret: Secret, content: typing.Optional[str]) -> None:
        """Encrypt content for its access line and write it to a secret."""
        secret.write(seal(content, self.roster, self.gpg))

    def add(self, secret: Secret, content: typing.Optional[str]) -> None:
        if secret.exists():
            raise SecretExists(secret.path)
        self.seal(secret, content)

    def decrypt(self, secret: Secret) -> None:
        """Replace an encrypted secret with its plaintext."""
        log.info(f"Decrypting {secret.path} in place")
        secret.write(self.contents(secret))

    def re_encrypt(self, secret: Secret) -> None:
        """Encrypt a secret again for whoever its access line names now."""
        text = secret.read()
        if is_encrypted(text):
            text = self.gpg.decrypt(text)
        log.info(f"Encrypting {secret.path}")
        self.seal(secret, text)
