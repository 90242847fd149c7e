"""Order book for one product, rebuilt from snapshots and kept current by updates.

Snapshot messages (I083) and update messages (I081) are read by attribute:
a message has ``prod_msg_seq`` and ``md_entries``; a snapshot also has
``calculated_flag``.  Each entry has ``md_entry_type``, ``md_entry_px``,
``md_entry_size`` and ``sign``; an update entry also has
``md_update_action``.  Prices are already scaled integers.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

__all__ = ["PriceQuantityLevel", "OrderBook", "apply_sign_to_price"]

_BUY = "0"
_SELL = "1"
_DERIVED_BUY = "E"
_DERIVED_SELL = "F"

_ACTION_NEW = "0"
_ACTION_CHANGE = "1"
_ACTION_DELETE = "2"
_ACTION_OVERLAY = "5"

_FLAG_CONTINUOUS = "0"


class _Entry(Protocol):
    md_entry_type: Any
    md_entry_px: int
    md_entry_size: int
    sign: Any


class _Message(Protocol):
    prod_msg_seq: int
    md_entries: Iterable[Any]


@dataclass(frozen=True)
class PriceQuantityLevel:
    """A price and the quantity resting at it."""

    price: int
    quantity: int


def _as_char(value: Any) -> str:
    """Normalise a one-character field given as str, bytes or an int code."""
    if isinstance(value, (bytes, bytearray)):
        return value.decode("latin-1")
    if isinstance(value, int):
        return chr(value)
    return str(value)


def apply_sign_to_price(magnitude: int, sign: Any) -> int:
    """Return the price with the sign character applied.

    A sign of ``'-'`` makes a positive magnitude negative; anything else
    leaves the value unchanged.
    """
    if _as_char(sign) == "-" and magnitude > 0:
        return -magnitude
    return magnitude


def _entry_level(entry: _Entry) -> tuple[int, int]:
    price = apply_sign_to_price(entry.md_entry_px, entry.sign)
    return price, int(entry.md_entry_size)


def _derived(price: int, quantity: int) -> Optional[PriceQuantityLevel]:
    """A derived quote, or None when both price and quantity are zero."""
    if quantity > 0 or price != 0:
        return PriceQuantityLevel(price, quantity)
    return None


class OrderBook:
    """Bid and ask levels of one product, plus its best derived quotes."""

    def __init__(self, product_id: str = "", decimal_locator: int = 0) -> None:
        self.product_id = product_id
        self.decimal_locator = decimal_locator
        self.last_prod_msg_seq = 0
        self.derived_bid: Optional[PriceQuantityLevel] = None
        self.derived_ask: Optional[PriceQuantityLevel] = None
        self._bids: dict[int, int] = {}
        self._asks: dict[int, int] = {}

    def reset(self) -> None:
        """Clear all levels, derived quotes and the product sequence number."""
        self._bids.clear()
        self._asks.clear()
        self.derived_bid = None
        self.derived_ask = None
        self.last_prod_msg_seq = 0

    def top_bids(self, n: int) -> list[PriceQuantityLevel]:
        """Return up to ``n`` bid levels, highest price first."""
        return self._top(self._bids, n, descending=True)

    def top_asks(self, n: int) -> list[PriceQuantityLevel]:
        """Return up to ``n`` ask levels, lowest price first."""
        return self._top(self._asks, n, descending=False)

    @staticmethod
    def _top(side: dict[int, int], n: int, *, descending: bool) -> list[PriceQuantityLevel]:
        if n < 0:
            raise ValueError("n must not be negative")
        prices = sorted(side, reverse=descending)[:n]
        return [PriceQuantityLevel(price, side[price]) for price in prices]

    def apply_snapshot(self, msg: _Message) -> None:
        """Rebuild the book from a full snapshot message."""
        self.reset()
        self.last_prod_msg_seq = msg.prod_msg_seq
        continuous = _as_char(getattr(msg, "calculated_flag", _FLAG_CONTINUOUS)) == _FLAG_CONTINUOUS

        for entry in msg.md_entries:
            price, quantity = _entry_level(entry)
            entry_type = _as_char(entry.md_entry_type)
            if entry_type == _BUY:
                if quantity > 0:
                    self._bids[price] = quantity
            elif entry_type == _SELL:
                if quantity > 0:
                    self._asks[price] = quantity
            elif entry_type == _DERIVED_BUY:
                if continuous:
                    self.derived_bid = _derived(price, quantity)
            elif entry_type == _DERIVED_SELL:
                if continuous:
                    self.derived_ask = _derived(price, quantity)

    def apply_update(self, msg: _Message) -> None:
        """Apply the entries of an update message in order."""
        if msg.prod_msg_seq > self.last_prod_msg_seq or self.last_prod_msg_seq == 0:
            self.last_prod_msg_seq = msg.prod_msg_seq

        for entry in msg.md_entries:
            price, quantity = _entry_level(entry)
            entry_type = _as_char(entry.md_entry_type)
            action = _as_char(entry.md_update_action)
            if entry_type == _BUY:
                self._apply_level(self._bids, action, price, quantity)
            elif entry_type == _SELL:
                self._apply_level(self._asks, action, price, quantity)
            elif entry_type == _DERIVED_BUY:
                if action == _ACTION_OVERLAY:
                    self.derived_bid = _derived(price, quantity)
            elif entry_type == _DERIVED_SELL:
                if action == _ACTION_OVERLAY:
                    self.derived_ask = _derived(price, quantity)

    @staticmethod
    def _apply_level(side: dict[int, int], action: str, price: int, quantity: int) -> None:
        if action == _ACTION_NEW:
            if quantity > 0:
                side[price] = quantity
        elif action == _ACTION_CHANGE:
            if quantity > 0:
                side[price] = quantity
            else:
                side.pop(price, None)
        elif action == _ACTION_DELETE:
            side.pop(price, None)