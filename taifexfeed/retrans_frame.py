"""Framing shared by all retransmission protocol messages.

Every message is laid out as a fixed 16-byte header, an optional payload
and a one-byte checksum footer.  All integers are big-endian.
"""

from __future__ import annotations

import re
import struct
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar

__all__ = [
    "ProtocolError",
    "StandardTimeFormat",
    "RetransmissionMsgHeader",
    "FOOTER_SIZE",
    "MSG_SIZE_FIELD_SIZE",
    "MSG_SIZE_BASE",
    "calculate_retransmission_checksum",
    "calculate_check_code",
    "verify_footer",
]

FOOTER_SIZE = 1
"""Size of the checksum footer in bytes."""

MSG_SIZE_FIELD_SIZE = 2
"""Size of the leading MsgSize field in bytes."""

_NANOS_PER_SECOND = 1_000_000_000
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_LEADING_INTEGER = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")


class ProtocolError(ValueError):
    """Raised when a retransmission message cannot be built or parsed."""


def calculate_retransmission_checksum(data: Iterable[int]) -> int:
    """Return the sum of the bytes modulo 256."""
    return sum(bytes(data)) % 256


def calculate_check_code(mult_op: int, password: str) -> int:
    """Return the login check code: ``|mult_op * password| / 100 % 100``.

    The password must begin with a decimal integer (leading whitespace and a
    sign are allowed, trailing text is ignored) that fits in 64 signed bits.
    """
    if not password:
        raise ProtocolError("Password cannot be empty for CheckCode calculation.")
    match = _LEADING_INTEGER.match(password)
    if match is None:
        raise ProtocolError(
            "Invalid password format (not a number) for CheckCode calculation."
        )
    value = int(match.group(1))
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ProtocolError("Password value out of range for CheckCode calculation.")
    product = abs(mult_op * value)
    return (product // 100) % 100


def verify_footer(data: bytes, offset: int, checksum_length: int) -> tuple[int, int]:
    """Check the footer byte at ``offset`` against the first ``checksum_length`` bytes.

    Returns the checksum and the offset just past the footer.
    """
    data = bytes(data)
    if offset + FOOTER_SIZE > len(data):
        raise ProtocolError(
            f"Not enough data for footer. Required: {FOOTER_SIZE}, "
            f"Available: {max(len(data) - offset, 0)}"
        )
    received = data[offset]
    if checksum_length <= 0 or checksum_length > len(data):
        raise ProtocolError("Invalid range for checksum calculation.")
    calculated = calculate_retransmission_checksum(data[:checksum_length])
    if calculated != received:
        raise ProtocolError(
            f"Retransmission checksum mismatch. Calculated: {calculated}, "
            f"Received: {received}"
        )
    return received, offset + FOOTER_SIZE


def _pack(fmt: struct.Struct, *values: int) -> bytes:
    try:
        return fmt.pack(*values)
    except struct.error as exc:
        raise ProtocolError(f"Field value out of range: {exc}") from exc


@dataclass
class StandardTimeFormat:
    """Seconds since the Unix epoch plus a nanosecond part."""

    epoch_s: int = 0
    nanosecond: int = 0

    SIZE: ClassVar[int] = 8
    _STRUCT: ClassVar[struct.Struct] = struct.Struct(">II")

    @classmethod
    def now(cls) -> StandardTimeFormat:
        """Return the current wall-clock time."""
        nanos = time.time_ns()
        return cls(
            epoch_s=(nanos // _NANOS_PER_SECOND) & 0xFFFFFFFF,
            nanosecond=nanos % _NANOS_PER_SECOND,
        )

    def to_bytes(self) -> bytes:
        """Serialize to the 8-byte wire form."""
        return _pack(self._STRUCT, self.epoch_s, self.nanosecond)

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> tuple[StandardTimeFormat, int]:
        """Parse from ``data`` at ``offset``; return the value and the next offset."""
        data = bytes(data)
        if offset + cls.SIZE > len(data):
            raise ProtocolError(
                f"StandardTimeFormat: not enough data. Required: {cls.SIZE}, "
                f"Available: {max(len(data) - offset, 0)}"
            )
        epoch_s, nanosecond = cls._STRUCT.unpack_from(data, offset)
        return cls(epoch_s, nanosecond), offset + cls.SIZE


@dataclass
class RetransmissionMsgHeader:
    """Header common to every retransmission protocol message.

    ``msg_size`` counts the bytes from MsgType up to, not including, the
    checksum.
    """

    msg_size: int = 0
    msg_type: int = 0
    msg_seq_num: int = 0
    msg_time: StandardTimeFormat = field(default_factory=StandardTimeFormat)

    SIZE: ClassVar[int] = 16
    _STRUCT: ClassVar[struct.Struct] = struct.Struct(">HHI")

    def to_bytes(self) -> bytes:
        """Serialize to the 16-byte wire form."""
        return (
            _pack(self._STRUCT, self.msg_size, self.msg_type, self.msg_seq_num)
            + self.msg_time.to_bytes()
        )

    @classmethod
    def from_bytes(
        cls, data: bytes, offset: int = 0
    ) -> tuple[RetransmissionMsgHeader, int]:
        """Parse from ``data`` at ``offset``; return the header and the next offset."""
        data = bytes(data)
        if offset + cls.SIZE > len(data):
            raise ProtocolError(
                f"RetransmissionMsgHeader: not enough data for header. "
                f"Required: {cls.SIZE}, Available: {max(len(data) - offset, 0)}"
            )
        msg_size, msg_type, msg_seq_num = cls._STRUCT.unpack_from(data, offset)
        msg_time, next_offset = StandardTimeFormat.from_bytes(
            data, offset + cls._STRUCT.size
        )
        return cls(msg_size, msg_type, msg_seq_num, msg_time), next_offset


MSG_SIZE_BASE = RetransmissionMsgHeader.SIZE - MSG_SIZE_FIELD_SIZE
"""Value of MsgSize for a message that carries no payload."""