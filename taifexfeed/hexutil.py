"""Conversions of raw byte sequences to text."""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["bytes_to_string", "bytes_to_hex_string"]


def bytes_to_string(data: Iterable[int] | None) -> str:
    """Return the bytes as a string with one character per byte, NULs kept."""
    if not data:
        return ""
    return bytes(data).decode("latin-1")


def bytes_to_hex_string(data: Iterable[int] | None) -> str:
    """Return the bytes as uppercase hexadecimal, two characters per byte."""
    if not data:
        return ""
    return bytes(data).hex().upper()