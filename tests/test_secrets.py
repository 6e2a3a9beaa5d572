import pytest

from protego.errors import (
    EmptyContent,
    MissingKeysForRecipients,
    MissingOrEmptyAccessLine,
    NoRecipients,
    NotEncrypted,
    SecretExists,
    UnknownUser,
)
from protego.secrets import (
    PLACEHOLDER,
    SecretKeeper,
    extract,
    inject,
    prepare_for_encryption,
    seal,
)

from conftest import ALICE, BOB, CAROL

CONTENT = "access: @team\npassword = hunter2\n"


@pytest.mark.parametrize('expression', ['alice', '@team, carol', 'bob\t@all '])
def test_access_line_round_trip(expression):
    assert extract(inject(expression, "body\n")) == expression


def test_inject_placeholder():
    assert inject(PLACEHOLDER) == "access: FIXME\n"


@pytest.mark.parametrize('content', [
    "password = hunter2\n",
    "access:alice\n",
    "access: \nalice\n",
    "\naccess: alice\n",
])
def test_extract_missing_or_empty(content):
    with pytest.raises(MissingOrEmptyAccessLine):
        extract(content)


def test_extract_windows_line_ending():
    assert extract("access: alice\r\nbody") == 'alice'


def test_prepare_for_encryption(roster, gpg):
    assert prepare_for_encryption(CONTENT, roster, gpg) == (CONTENT, {ALICE, BOB})


@pytest.mark.parametrize('content', ['', None])
def test_empty_content(roster, gpg, content):
    with pytest.raises(EmptyContent):
        prepare_for_encryption(content, roster, gpg)


def test_no_recipients(roster, gpg):
    with pytest.raises(NoRecipients):
        prepare_for_encryption("access: @nobody\n", roster, gpg)


def test_unknown_user_is_propagated(roster, gpg):
    with pytest.raises(UnknownUser):
        prepare_for_encryption("access: FIXME\n", roster, gpg)


def test_missing_key_blocks_encryption(roster, gpg):
    gpg.keys.discard(BOB)
    with pytest.raises(MissingKeysForRecipients) as error:
        seal(CONTENT, roster, gpg)
    assert error.value.missing == {BOB: ('bob',)}
    assert gpg.encrypted == []


def test_all_missing_keys_are_reported(roster, gpg):
    gpg.keys.clear()
    with pytest.raises(MissingKeysForRecipients) as error:
        seal("access: @all\n", roster, gpg)
    assert set(error.value.missing) == {ALICE, BOB, CAROL}


def test_seal(roster, gpg):
    ciphertext = seal(CONTENT, roster, gpg)
    assert gpg.encrypted == [(CONTENT, (ALICE, BOB))]
    assert gpg.decrypt(ciphertext) == CONTENT


def test_re_encrypt_plaintext(tmp_path, roster, gpg):
    sk = SecretKeeper(roster=roster, gpg=gpg)
    secret = sk[tmp_path / 'secret.asc']
    secret.write(CONTENT)

    sk.re_encrypt(secret)
    assert gpg.decrypt(secret.read()) == CONTENT


def test_re_encrypt_is_idempotent(tmp_path, roster, gpg):
    sk = SecretKeeper(roster=roster, gpg=gpg)
    secret = sk[tmp_path / 'secret.asc']
    sk.add(secret, CONTENT)

    sk.re_encrypt(secret)
    sk.re_encrypt(secret)
    assert sk.contents(secret) == CONTENT


def test_add_refuses_existing(tmp_path, roster, gpg):
    sk = SecretKeeper(roster=roster, gpg=gpg)
    secret = sk[tmp_path / 'secret.asc']
    secret.write("already here")
    with pytest.raises(SecretExists):
        sk.add(secret, CONTENT)


def test_contents_requires_encryption(tmp_path, roster, gpg):
    sk = SecretKeeper(roster=roster, gpg=gpg)
    secret = sk[tmp_path / 'secret.txt']
    secret.write(CONTENT)
    with pytest.raises(NotEncrypted):
        sk.contents(secret)
