"""Authenticated encryption of presence payloads into QR token strings."""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from qr_presence.core import payload as payload_codec
from qr_presence.core.errors import AuthenticationFailed, MalformedToken
from qr_presence.core.settings import settings

logger = logging.getLogger(__name__)

KEY_SIZE_BYTES = 32
IV_SIZE_BYTES = 12
TAG_SIZE_BYTES = 16
ENVELOPE_SIZE_BYTES = IV_SIZE_BYTES + TAG_SIZE_BYTES + payload_codec.PAYLOAD_SIZE_BYTES


def generate_key() -> bytes:
    """Return 32 fresh random bytes of AES-256 key material."""
    return os.urandom(KEY_SIZE_BYTES)


def load_server_key(secret_b64: str | None) -> bytes:
    """Resolve the server-held token key.

    A base64 value that decodes to exactly 32 bytes is used as-is. Anything
    else falls back to a random key for this process, which is logged once so
    an operator can persist it.
    """
    if secret_b64:
        try:
            key = base64.b64decode(secret_b64, validate=True)
        except (binascii.Error, ValueError):
            key = b""
        if len(key) == KEY_SIZE_BYTES:
            logger.info("[QR_KEY] Loaded from env (QR_SECRET_KEY)")
            return key
        logger.warning(
            "[QR_KEY] QR_SECRET_KEY is not 32 bytes after base64 decode. "
            "Ignoring and generating random key."
        )

    key = generate_key()
    logger.info("[QR_KEY] Generated random 32-byte key for this run.")
    logger.info("[QR_KEY] (If you want to persist it, put this in .env as QR_SECRET_KEY)")
    logger.info("QR_SECRET_KEY=%s", base64.b64encode(key).decode("ascii"))
    return key


class TokenCipher:
    """AES-256-GCM token sealing with the envelope ``iv || tag || ciphertext``.

    The envelope is encoded with standard padded Base64, so every token is
    52 characters long.
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE_BYTES:
            raise ValueError(f"token key must be {KEY_SIZE_BYTES} bytes, got {len(key)}")
        self._aead = AESGCM(key)

    def encrypt(self, payload: bytes) -> str:
        """Seal a payload under a fresh random IV and return the token string."""
        iv = os.urandom(IV_SIZE_BYTES)
        sealed = self._aead.encrypt(iv, bytes(payload), None)
        ciphertext, tag = sealed[:-TAG_SIZE_BYTES], sealed[-TAG_SIZE_BYTES:]
        return base64.b64encode(iv + tag + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> bytes:
        """Open a token and return the raw payload bytes.

        Raises:
            MalformedToken: If the token is not Base64 or has the wrong size.
            AuthenticationFailed: If the authentication tag does not verify.
        """
        try:
            envelope = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as err:
            raise MalformedToken(f"Invalid base64 encoding: {err}") from err

        if len(envelope) != ENVELOPE_SIZE_BYTES:
            raise MalformedToken(
                f"token envelope must be {ENVELOPE_SIZE_BYTES} bytes, got {len(envelope)}"
            )

        iv = envelope[:IV_SIZE_BYTES]
        tag = envelope[IV_SIZE_BYTES:IV_SIZE_BYTES + TAG_SIZE_BYTES]
        ciphertext = envelope[IV_SIZE_BYTES + TAG_SIZE_BYTES:]
        try:
            return self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as err:
            raise AuthenticationFailed("token authentication tag mismatch") from err

    def decrypt_payload(self, token: str) -> payload_codec.Payload:
        """Open a token and decode its payload fields."""
        return payload_codec.decode(self.decrypt(token))


def encrypt(payload: bytes, key: bytes) -> str:
    """Seal ``payload`` under ``key``."""
    return TokenCipher(key).encrypt(payload)


def decrypt(token: str, key: bytes) -> bytes:
    """Open ``token`` under ``key``."""
    return TokenCipher(key).decrypt(token)


class _ServerCipherSingleton:
    """Singleton wrapper for the server-held TokenCipher."""

    _instance: TokenCipher | None = None

    @classmethod
    def get_instance(cls) -> TokenCipher:
        """Get or create the process-wide cipher from settings."""
        if cls._instance is None:
            cls._instance = TokenCipher(load_server_key(settings.qr_secret_key))
        return cls._instance


def get_server_cipher() -> TokenCipher:
    """Return the cipher keyed with the server-held key."""
    return _ServerCipherSingleton.get_instance()
