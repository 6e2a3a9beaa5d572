"""
The roster maps user names to key fingerprints and group names to members.

Rosters are read from a verified '.users' file:

    # comments and blank lines are ignored
    alice = 0123456789ABCDEF0123456789ABCDEF01234567
    bob = 89ABCDEF0123456789ABCDEF0123456789ABCDEF
    @admins = alice, bob
    @everyone = @admins carol

Groups may only refer to users and groups declared above them.
"""

import logging
import re
import typing

import attr

from .errors import (
    DuplicateGroup,
    DuplicateUser,
    MalformedLine,
    ResolutionTooDeep,
    UnknownGroup,
    UnknownReference,
    UnknownUser,
)

log = logging.getLogger(__name__)

GROUP_LINE = re.compile(r'^(@[A-Za-z0-9-]+)\s*=\s*(.*)$')
USER_LINE = re.compile(r'^([A-Za-z0-9:-]+)\s*=\s*([0-9A-Fa-f]{40})\s*$')
SEPARATORS = re.compile(r'[\t ,]+')


def tokens(expression: str) -> typing.Tuple[str, ...]:
    """Split a list of names on runs of tabs, spaces and commas."""
    return tuple(t for t in SEPARATORS.split(expression.strip()) if t)


def is_group(name: str) -> bool:
    return name.startswith('@')


@attr.s(frozen=True)
class User:
    name: str = attr.ib()
    key_id: str = attr.ib(converter=str.upper)

    def __str__(self):
        return self.name


@attr.s(frozen=True)
class Group:
    name: str = attr.ib()
    members: typing.Tuple[str, ...] = attr.ib(converter=tuple, default=())

    def __str__(self):
        return self.name


@attr.s(frozen=True)
class Roster:
    users: typing.Dict[str, User] = attr.ib(factory=dict)
    groups: typing.Dict[str, Group] = attr.ib(factory=dict)

    @classmethod
    def parse(cls, text: str, skip_comments: bool = True) -> 'Roster':
        """
        Parse the body of a roster file.

        The first invalid line aborts parsing, so a partial roster is never
        returned. With skip_comments disabled every line must be a
        declaration, which is how older roster files were read.
        """
        users: typing.Dict[str, User] = {}
        groups: typing.Dict[str, Group] = {}

        for number, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if skip_comments and (not stripped or stripped.startswith('#')):
                continue

            group = GROUP_LINE.match(stripped)
            if group:
                name, members = group.group(1), tokens(group.group(2))
                if name in groups:
                    raise DuplicateGroup(name)
                for member in members:
                    if member not in (groups if is_group(member) else users):
                        raise UnknownReference(name, member)
                groups[name] = Group(name, members)
                continue

            user = USER_LINE.match(stripped)
            if user:
                name = user.group(1)
                if name in users:
                    raise DuplicateUser(name)
                users[name] = User(name, user.group(2))
                continue

            raise MalformedLine(number, line)

        log.debug(f"Parsed roster with {len(users)} users "
                  f"and {len(groups)} groups")
        return cls(users=users, groups=groups)

    def resolve(self, expression: str) -> typing.FrozenSet[str]:
        """
        Resolve an access expression into the key ids of its recipients.

        An expression naming only empty groups resolves to an empty set,
        callers decide if that is acceptable.
        """
        expanded: typing.Dict[str, typing.FrozenSet[str]] = {}
        key_ids: typing.Set[str] = set()
        for token in tokens(expression):
            key_ids.update(self._expand(token, 0, expanded))
        log.debug(f"Resolved '{expression}' to {len(key_ids)} recipients")
        return frozenset(key_ids)

    def _expand(
            self,
            name: str,
            depth: int,
            expanded: typing.Dict[str, typing.FrozenSet[str]]) -> typing.FrozenSet[str]:
        if not is_group(name):
            if name not in self.users:
                raise UnknownUser(name)
            return frozenset((self.users[name].key_id,))

        if name not in self.groups:
            raise UnknownGroup(name)
        if name in expanded:
            return expanded[name]
        # Groups only refer to earlier groups, so no chain can be longer
        # than the number of groups.
        if depth >= len(self.groups):
            raise ResolutionTooDeep(name, len(self.groups))

        expanded[name] = frozenset().union(*(
            self._expand(member, depth + 1, expanded)
            for member in self.groups[name].members))
        return expanded[name]

    def names_for(self, key_id: str) -> typing.Tuple[str, ...]:
        """Names of the users that hold a key."""
        return tuple(sorted(
            u.name for u in self.users.values() if u.key_id == key_id.upper()))

    def __iter__(self) -> typing.Iterator[User]:
        return iter(sorted(self.users.values(), key=lambda u: u.name))
