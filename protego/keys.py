"""
Fetch the public keys named in a roster from a keyserver.
"""

import logging
import typing

import attr
import requests

from .errors import KeyserverError
from .gpg import KeyLookup
from .roster import Roster

log = logging.getLogger(__name__)

DEFAULT_KEYSERVER = 'https://keys.openpgp.org'


@attr.s(frozen=True)
class Keyserver:
    url: str = attr.ib(default=DEFAULT_KEYSERVER, converter=lambda u: u.rstrip('/'))
    timeout: float = attr.ib(default=10)

    def fetch(self, fingerprint: str) -> typing.Optional[str]:
        """Fetch an armoured key, or None if the keyserver doesn't have it."""
        url = f"{self.url}/vks/v1/by-fingerprint/{fingerprint.upper()}"
        log.debug(f"Fetching {url}")
        try:
            r = requests.get(url, timeout=self.timeout)
        except requests.RequestException as error:
            raise KeyserverError(f"Could not reach {self.url}: {error}") from error

        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise KeyserverError(
                f"{self.url} returned HTTP {r.status_code} for {fingerprint}")
        return r.text


@attr.s(frozen=True)
class Refreshed:
    imported: typing.Tuple[str, ...] = attr.ib(converter=tuple, default=())
    unpublished: typing.Tuple[str, ...] = attr.ib(converter=tuple, default=())
    rejected: typing.Tuple[str, ...] = attr.ib(converter=tuple, default=())


def refresh(roster: Roster, keys: KeyLookup, keyserver: Keyserver) -> Refreshed:
    """Import the key of every user in the roster."""
    imported: typing.List[str] = []
    unpublished: typing.List[str] = []
    rejected: typing.List[str] = []

    for key_id in sorted({user.key_id for user in roster}):
        names = ', '.join(roster.names_for(key_id))
        material = keyserver.fetch(key_id)
        if material is None:
            log.warning(f"{keyserver.url} has no key {key_id} ({names})")
            unpublished.append(key_id)
        elif keys.import_key(material):
            log.info(f"Imported {key_id} ({names})")
            imported.append(key_id)
        else:
            log.warning(f"gpg did not import {key_id} ({names})")
            rejected.append(key_id)

    return Refreshed(imported=imported, unpublished=unpublished, rejected=rejected)
