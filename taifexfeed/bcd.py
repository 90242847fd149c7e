"""Packed BCD encoding and decoding of numeric ASCII strings."""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["ascii_to_pack_bcd", "pack_bcd_to_ascii"]

_DIGITS = frozenset("0123456789")


def ascii_to_pack_bcd(text: str) -> bytes:
    """Pack a string of ASCII digits into BCD, two digits per byte.

    An odd number of digits is padded with a leading zero.  An empty string
    packs to empty bytes; any non-digit character raises ValueError.
    """
    if not text:
        return b""
    if not _DIGITS.issuperset(text):
        raise ValueError(
            "Invalid input: ascii_to_pack_bcd expects a string containing only digits."
        )
    if len(text) % 2:
        text = "0" + text
    pairs = zip(text[::2], text[1::2])
    return bytes((int(high) << 4) | int(low) for high, low in pairs)


def _decode_digits(data: Iterable[int]) -> str:
    digits = []
    for byte in bytes(data):
        high, low = byte >> 4, byte & 0x0F
        if high > 9:
            raise ValueError("Invalid BCD data: first nibble > 9.")
        if low > 9:
            raise ValueError("Invalid BCD data: second nibble > 9.")
        digits.append(f"{high}{low}")
    return "".join(digits)


def pack_bcd_to_ascii(data: Iterable[int], num_digits: int = 0) -> str:
    """Unpack BCD bytes into a string of ASCII digits.

    With ``num_digits`` of zero every decoded digit is returned.  Otherwise
    the result is left-padded with zeros or cut down to its last
    ``num_digits`` digits.  A nibble above 9 raises ValueError.
    """
    if num_digits < 0:
        raise ValueError("num_digits must not be negative")
    decoded = _decode_digits(data)
    if num_digits == 0:
        return decoded
    if len(decoded) < num_digits:
        return decoded.rjust(num_digits, "0")
    return decoded[len(decoded) - num_digits:]