"""TAIFEX market data feed tools: BCD fields, retransmission framing, order books, multicast."""

__version__ = "0.1.0"

__all__ = [
    "bcd",
    "hexutil",
    "multicast",
    "order_book",
    "retrans_frame",
]