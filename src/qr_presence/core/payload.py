"""Fixed 10-byte presence payload codec.

Layout (big-endian, positions never change)::

    [0]     version          uint8
    [1..4]  timestamp_low32  uint32, low 32 bits of an epoch-ms clock
    [5]     room_code        uint8
    [6..9]  nonce            4 random bytes

The timestamp wraps roughly every 49.7 days.
"""
from __future__ import annotations

import os
import struct
from dataclasses import dataclass

from qr_presence.core.errors import MalformedPayload

PAYLOAD_SIZE_BYTES = 10
NONCE_SIZE_BYTES = 4
UINT8_MAX = 0xFF
TIMESTAMP_MASK = 0xFFFFFFFF

_HEADER = struct.Struct(">BIB")


@dataclass(frozen=True)
class Payload:
    """Decoded view of a presence payload."""

    version: int
    timestamp_low32: int
    room_code: int
    nonce: bytes

    def to_bytes(self) -> bytes:
        """Serialize back to the fixed 10-byte layout."""
        return _HEADER.pack(self.version, self.timestamp_low32, self.room_code) + self.nonce


def _check_uint8(name: str, value: int) -> None:
    if not 0 <= value <= UINT8_MAX:
        raise ValueError(f"{name} must fit in one byte (0..255), got {value}")


def encode(
    version: int,
    timestamp_ms: int,
    room_code: int,
    nonce: bytes | None = None,
) -> bytes:
    """Build the 10-byte payload.

    Args:
        version: Protocol version, one byte.
        timestamp_ms: Epoch milliseconds; only the low 32 bits are kept.
        room_code: Room identifier, one byte.
        nonce: Optional explicit 4-byte nonce. Random bytes are drawn when omitted.

    Returns:
        The packed payload.

    Raises:
        ValueError: If ``version`` or ``room_code`` exceeds one byte or the nonce
            is not exactly four bytes.
    """
    _check_uint8("version", version)
    _check_uint8("room_code", room_code)
    if nonce is None:
        nonce = os.urandom(NONCE_SIZE_BYTES)
    elif len(nonce) != NONCE_SIZE_BYTES:
        raise ValueError(f"nonce must be {NONCE_SIZE_BYTES} bytes, got {len(nonce)}")

    ts_low = int(timestamp_ms) & TIMESTAMP_MASK
    return _HEADER.pack(version, ts_low, room_code) + bytes(nonce)


def decode(data: bytes) -> Payload:
    """Parse a 10-byte payload.

    Raises:
        MalformedPayload: If ``data`` is not exactly 10 bytes long.
    """
    if len(data) != PAYLOAD_SIZE_BYTES:
        raise MalformedPayload(
            f"payload must be {PAYLOAD_SIZE_BYTES} bytes, got {len(data)}"
        )
    version, ts_low, room_code = _HEADER.unpack_from(data, 0)
    return Payload(
        version=version,
        timestamp_low32=ts_low,
        room_code=room_code,
        nonce=bytes(data[_HEADER.size:]),
    )
