import os
import shlex
import shutil
import typing

from .errors import NoEditor

ARMOUR_HEADER = '-----BEGIN PGP MESSAGE-----'
FALLBACK_EDITORS = ('sensible-editor', 'editor', 'nano', 'vim', 'vi')


def find_editor() -> str:
    """Find an editor command from $VISUAL, $EDITOR or a list of common ones."""
    candidates: typing.List[str] = [
        os.environ[name] for name in ('VISUAL', 'EDITOR') if os.environ.get(name)]
    candidates += FALLBACK_EDITORS

    for candidate in candidates:
        words = shlex.split(candidate)
        if words and shutil.which(words[0]):
            return candidate

    raise NoEditor()


def is_encrypted(text: str) -> bool:
    """Check if text is an armoured OpenPGP message."""
    return text.lstrip().startswith(ARMOUR_HEADER)
