"""Tests for AES-GCM token sealing."""

import base64
import logging

import pytest

from qr_presence.core.errors import AuthenticationFailed, MalformedToken
from qr_presence.core.payload import encode
from qr_presence.services.cipher import (
    ENVELOPE_SIZE_BYTES,
    IV_SIZE_BYTES,
    KEY_SIZE_BYTES,
    TAG_SIZE_BYTES,
    TokenCipher,
    decrypt,
    encrypt,
    generate_key,
    load_server_key,
)

TOKEN_LENGTH = 52


def _flip(token: str, index: int) -> str:
    raw = bytearray(base64.b64decode(token))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


def test_round_trip(cipher: TokenCipher) -> None:
    payload = encode(1, 1_700_000_000_000, 1)
    token = cipher.encrypt(payload)
    assert cipher.decrypt(token) == payload


def test_module_level_helpers(key: bytes) -> None:
    payload = encode(1, 42, 3)
    assert decrypt(encrypt(payload, key), key) == payload


def test_token_is_fixed_length_base64(cipher: TokenCipher) -> None:
    token = cipher.encrypt(encode(1, 1000, 1))
    assert len(token) == TOKEN_LENGTH
    assert len(base64.b64decode(token, validate=True)) == ENVELOPE_SIZE_BYTES


def test_decrypt_payload_decodes_fields(cipher: TokenCipher) -> None:
    token = cipher.encrypt(encode(4, 2**32 + 77, 9))
    payload = cipher.decrypt_payload(token)
    assert (payload.version, payload.timestamp_low32, payload.room_code) == (4, 77, 9)


@pytest.mark.parametrize("index", range(IV_SIZE_BYTES, ENVELOPE_SIZE_BYTES))
def test_tampering_with_tag_or_ciphertext_fails(cipher: TokenCipher, index: int) -> None:
    token = cipher.encrypt(encode(1, 1000, 1))
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(_flip(token, index))


def test_tampering_with_iv_fails(cipher: TokenCipher) -> None:
    token = cipher.encrypt(encode(1, 1000, 1))
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(_flip(token, 0))


def test_wrong_key_fails(cipher: TokenCipher) -> None:
    token = cipher.encrypt(encode(1, 1000, 1))
    with pytest.raises(AuthenticationFailed):
        TokenCipher(generate_key()).decrypt(token)


def test_tag_appended_layout_is_rejected(cipher: TokenCipher) -> None:
    """A token sealed as iv || ciphertext+tag does not open under iv || tag || ciphertext."""
    raw = base64.b64decode(cipher.encrypt(encode(1, 1000, 1)))
    iv = raw[:IV_SIZE_BYTES]
    tag = raw[IV_SIZE_BYTES:IV_SIZE_BYTES + TAG_SIZE_BYTES]
    ciphertext = raw[IV_SIZE_BYTES + TAG_SIZE_BYTES:]
    other_layout = base64.b64encode(iv + ciphertext + tag).decode("ascii")
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(other_layout)


@pytest.mark.parametrize(
    "token",
    [
        "not base64 at all!",
        base64.b64encode(b"\x00" * (ENVELOPE_SIZE_BYTES - 1)).decode("ascii"),
        base64.b64encode(b"\x00" * (ENVELOPE_SIZE_BYTES + 1)).decode("ascii"),
        "",
    ],
)
def test_malformed_tokens(cipher: TokenCipher, token: str) -> None:
    with pytest.raises(MalformedToken):
        cipher.decrypt(token)


def test_ivs_never_repeat(cipher: TokenCipher) -> None:
    payload = encode(1, 1000, 1)
    ivs = {base64.b64decode(cipher.encrypt(payload))[:IV_SIZE_BYTES] for _ in range(10_000)}
    assert len(ivs) == 10_000


def test_cipher_requires_32_byte_key() -> None:
    with pytest.raises(ValueError):
        TokenCipher(b"short")


class TestLoadServerKey:
    """Key resolution from QR_SECRET_KEY."""

    def test_valid_key_is_used(self, key: bytes) -> None:
        assert load_server_key(base64.b64encode(key).decode("ascii")) == key

    def test_wrong_length_falls_back_to_random(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            resolved = load_server_key(base64.b64encode(b"x" * 16).decode("ascii"))
        assert len(resolved) == KEY_SIZE_BYTES
        assert "not 32 bytes" in caplog.text

    def test_garbage_falls_back_to_random(self) -> None:
        assert len(load_server_key("%%%")) == KEY_SIZE_BYTES

    def test_missing_key_generates_fresh_ones(self) -> None:
        assert load_server_key(None) != load_server_key(None)
