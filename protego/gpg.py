import logging
import os
import pathlib
import subprocess
import typing

import attr

from .errors import GPGError

log = logging.getLogger(__name__)

STATUS_PREFIX = '[GNUPG:] '


@attr.s(frozen=True)
class Signature:
    valid: bool = attr.ib()
    fingerprint: str = attr.ib(converter=str.upper)


@attr.s(frozen=True)
class Verification:
    content: str = attr.ib()
    signatures: typing.Tuple[Signature, ...] = attr.ib(converter=tuple)


class Verifier(typing.Protocol):
    def verify(self, text: str) -> Verification: ...


class KeyLookup(typing.Protocol):
    def has_key(self, fingerprint: str) -> bool: ...

    def import_key(self, material: str) -> bool: ...


class Encrypter(KeyLookup, typing.Protocol):
    def encrypt(self, text: str, recipients: typing.Iterable[str]) -> str: ...

    def decrypt(self, text: str) -> str: ...


def parse_signatures(status: typing.Iterable[str]) -> typing.Tuple[Signature, ...]:
    """
    Collect one Signature per signature in gpg's --status-fd output.

    A signature is only valid when gpg reports both GOODSIG and VALIDSIG for
    it. The fingerprint is the primary key's where gpg gives one.
    """
    found: typing.List[typing.Dict[str, typing.Any]] = []

    for line in status:
        if not line.startswith(STATUS_PREFIX):
            continue
        keyword, *args = line[len(STATUS_PREFIX):].split()

        if keyword == 'NEWSIG' or (not found and keyword in (
                'GOODSIG', 'BADSIG', 'ERRSIG', 'EXPSIG',
                'EXPKEYSIG', 'REVKEYSIG', 'VALIDSIG')):
            found.append({'good': False, 'valid': False, 'fingerprint': ''})
        if not found:
            continue

        current = found[-1]
        if keyword == 'GOODSIG':
            current['good'] = True
            current['fingerprint'] = current['fingerprint'] or args[0]
        elif keyword == 'VALIDSIG':
            current['valid'] = True
            current['fingerprint'] = args[9] if len(args) > 9 else args[0]
        elif keyword in ('BADSIG', 'EXPSIG', 'EXPKEYSIG', 'REVKEYSIG'):
            current['good'] = False
            current['fingerprint'] = current['fingerprint'] or args[0]
        elif keyword == 'ERRSIG':
            current['good'] = False
            current['fingerprint'] = args[6] if len(args) > 6 and args[6] != '-' else args[0]

    return tuple(
        Signature(valid=s['good'] and s['valid'], fingerprint=s['fingerprint'])
        for s in found)


def usable_for_encryption(listing: str, fingerprint: str) -> bool:
    """
    Check gpg's --with-colons key listing for a usable encryption key.

    Revoked, expired, invalid and disabled keys are not usable, nor are keys
    without an encryption capability.
    """
    usable = False
    for line in listing.splitlines():
        fields = line.split(':')
        if fields[0] == 'pub':
            validity = fields[1] if len(fields) > 1 else ''
            capabilities = fields[11] if len(fields) > 11 else ''
            usable = (validity not in ('r', 'e', 'i')
                      and 'E' in capabilities
                      and 'D' not in capabilities)
        elif fields[0] == 'fpr' and len(fields) > 9:
            if fields[9].upper() == fingerprint.upper():
                return usable
    return False


@attr.s(frozen=True)
class GPG:
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(
            self,
            arguments: typing.Sequence[str],
            armour: bool) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--yes')
        if armour:
            command = (*command, '--armour')
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            armour: bool = False,
            stdin: typing.Optional[str] = None,
            check: bool = True) -> subprocess.CompletedProcess:
        env = dict(os.environ, GNUPGHOME=self.home.as_posix()) if self.home else None
        try:
            return subprocess.run(
                self.command(arguments, armour),
                encoding='utf-8',
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                check=check)
        except subprocess.CalledProcessError as error:
            for line in error.stderr.splitlines():
                log.error(line)
            raise GPGError(f"gpg exited with status {error.returncode}") from error
        except FileNotFoundError as error:
            raise GPGError("gpg is not installed") from error

    def verify(self, text: str) -> Verification:
        """Check the signatures on an inline signed document."""
        log.debug("Verifying signed document")
        result = self.run(['--status-fd', '2', '--decrypt'], stdin=text, check=False)
        signatures = parse_signatures(result.stderr.splitlines())
        for signature in signatures:
            log.debug(f"Signature from {signature.fingerprint} "
                      f"({'valid' if signature.valid else 'invalid'})")
        return Verification(content=result.stdout, signatures=signatures)

    def decrypt(self, text: str) -> str:
        log.debug("Decrypting message")
        return self.run(['--decrypt'], stdin=text).stdout

    def encrypt(self, text: str, recipients: typing.Iterable[str]) -> str:
        """
        Encrypt text for a list of fingerprints.

        Recipients come from a verified roster so gpg's own trust model is
        not consulted, and recipients or groups from gpg.conf are ignored.
        """
        recipients = list(recipients)
        args: typing.List[str] = [
            '--no-encrypt-to',
            '--no-default-recipient',
            '--no-groups',
            '--trust-model', 'always',
        ]
        for recipient in recipients:
            args += ['--recipient', recipient]
        args += ['--encrypt']
        log.debug(f"Encrypting message for {len(recipients)} recipients")
        return self.run(args, armour=True, stdin=text).stdout

    def has_key(self, fingerprint: str) -> bool:
        result = self.run(
            ['--with-colons', '--list-keys', fingerprint], check=False)
        if result.returncode != 0:
            return False
        return usable_for_encryption(result.stdout, fingerprint)

    def import_key(self, material: str) -> bool:
        result = self.run(['--status-fd', '1', '--import'], stdin=material, check=False)
        status = [line.split()[1] for line in result.stdout.splitlines()
                  if line.startswith(STATUS_PREFIX) and len(line.split()) > 1]
        return 'IMPORT_OK' in status
