"""
Every failure aborts the current command with a single 'error:' line.
"""

import typing

import click


class ProtegoException(click.ClickException):
    def show(self, file: typing.Optional[typing.IO] = None) -> None:
        click.echo(f"error: {self.format_message()}", file=file, err=True)


class ConfigurationError(ProtegoException):
    pass


class ScopeNotTrusted(ConfigurationError):
    def __init__(self, directory):
        super().__init__(f"No trusted signers are configured for {directory}")
        self.directory = directory


class TrustError(ProtegoException):
    pass


class UntrustedOrInvalidSignature(TrustError):
    def __init__(self, path):
        super().__init__(
            f"{path} is not signed by a trusted signer for this directory")
        self.path = path


class GrammarError(ProtegoException):
    pass


class MalformedLine(GrammarError):
    def __init__(self, number: int, line: str):
        super().__init__(f"Malformed roster line {number}: {line!r}")
        self.number = number
        self.line = line


class DuplicateUser(GrammarError):
    def __init__(self, name: str):
        super().__init__(f"User {name} is declared more than once")
        self.name = name


class DuplicateGroup(GrammarError):
    def __init__(self, name: str):
        super().__init__(f"Group {name} is declared more than once")
        self.name = name


class UnknownReference(GrammarError):
    def __init__(self, group: str, member: str):
        super().__init__(
            f"Group {group} refers to {member} before it is declared")
        self.group = group
        self.member = member


class ResolutionError(ProtegoException):
    pass


class UnknownUser(ResolutionError):
    def __init__(self, name: str):
        super().__init__(f"Unknown user {name}")
        self.name = name


class UnknownGroup(ResolutionError):
    def __init__(self, name: str):
        super().__init__(f"Unknown group {name}")
        self.name = name


class ResolutionTooDeep(ResolutionError):
    def __init__(self, name: str, limit: int):
        super().__init__(
            f"Group {name} is nested more than {limit} levels deep")
        self.name = name
        self.limit = limit


class ReadinessError(ProtegoException):
    pass


class EmptyContent(ReadinessError):
    def __init__(self):
        super().__init__("File is empty")


class MissingOrEmptyAccessLine(ReadinessError):
    def __init__(self):
        super().__init__("First line must be 'access: <users and @groups>'")


class NoRecipients(ReadinessError):
    def __init__(self, expression: str):
        super().__init__(f"'{expression}' does not resolve to any recipients")
        self.expression = expression


class MissingKeysForRecipients(ReadinessError):
    def __init__(self, missing: typing.Mapping[str, typing.Sequence[str]]):
        described = ', '.join(
            f"{key_id} ({', '.join(names) or 'unknown'})"
            for key_id, names in sorted(missing.items()))
        super().__init__(f"No usable public key for: {described}")
        self.missing = missing


class OperationError(ProtegoException):
    pass


class NoEditor(OperationError):
    def __init__(self):
        super().__init__("No usable editor found, set $EDITOR")


class SecretExists(OperationError):
    def __init__(self, path):
        super().__init__(f"{path} already exists")
        self.path = path


class NotEncrypted(OperationError):
    def __init__(self, path):
        super().__init__(f"{path} is not encrypted")
        self.path = path


class NotText(OperationError):
    def __init__(self, path):
        super().__init__(
            f"{path} is not UTF-8 text, only armoured secrets are supported")
        self.path = path


class EditorFailed(OperationError):
    pass


class NoChanges(OperationError):
    def __init__(self):
        super().__init__("No changes were made to the file")


class Unimplemented(OperationError):
    def __init__(self, command: str):
        super().__init__(f"'{command}' is not implemented")
        self.command = command


class GPGError(ProtegoException):
    pass


class KeyserverError(ProtegoException):
    pass
