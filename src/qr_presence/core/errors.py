"""Exception hierarchy for the presence token protocol.

Nothing here is fatal to the process. Each failure degrades a single
operation (a stale offset, a skipped token, an ignored event).
"""

from __future__ import annotations


class PresenceError(RuntimeError):
    """Base exception raised for presence-protocol failures."""


class MalformedPayload(PresenceError, ValueError):
    """Raised when payload bytes do not have the fixed 10-byte layout."""


class MalformedToken(PresenceError, ValueError):
    """Raised when a token is not valid Base64 or has the wrong envelope size."""


class AuthenticationFailed(PresenceError):
    """Raised when the AEAD tag of a token does not verify under the key."""


class InvalidRequest(PresenceError, ValueError):
    """Raised when a scan submission is missing a required field.

    The HTTP layer maps this to ``400 {"ok": false, "error": "invalid_request"}``.
    """

    error_code = "invalid_request"


class ClockSyncFailed(PresenceError):
    """Raised inside the clock probe when the time oracle cannot be read.

    The estimator recovers locally by assuming aligned clocks.
    """


class MintFailure(PresenceError):
    """Raised when a single issuance tick fails to produce a token.

    The issuance loop counts these and keeps running.
    """
