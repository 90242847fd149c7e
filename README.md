# taifexfeed

Building blocks for consuming the TAIFEX (Taiwan Futures Exchange) market
data feed in Python. The package has no dependencies outside the standard
library.

## Modules

- **`taifexfeed.bcd`** – packed BCD fields.
  `ascii_to_pack_bcd(text)` packs a string of digits two per byte, padding an
  odd-length string with a leading zero; an empty string gives `b""` and any
  non-digit raises `ValueError`. `pack_bcd_to_ascii(data, num_digits=0)`
  decodes the bytes back to digits; with a non-zero `num_digits` the result is
  left-padded with zeros or cut to its rightmost `num_digits` digits. A nibble
  above 9 raises `ValueError`.
- **`taifexfeed.hexutil`** – `bytes_to_string(data)` returns one character
  per byte (NULs kept), and `bytes_to_hex_string(data)` returns uppercase
  hexadecimal such as `DEADBEEF`. Empty or `None` input gives `""`.
- **`taifexfeed.retrans_frame`** – the framing shared by retransmission
  protocol messages, all big-endian:
  - `StandardTimeFormat` (`epoch_s`, `nanosecond`; 8 bytes) with
    `now()`, `to_bytes()` and `from_bytes(data, offset=0)`.
  - `RetransmissionMsgHeader` (`msg_size`, `msg_type`, `msg_seq_num`,
    `msg_time`; 16 bytes) with `to_bytes()` and `from_bytes(data, offset=0)`.
    `from_bytes` returns the parsed value together with the next offset.
  - `calculate_retransmission_checksum(data)` – sum of the bytes modulo 256.
  - `verify_footer(data, offset, checksum_length)` – checks the checksum byte
    at `offset` against the first `checksum_length` bytes and returns the
    checksum and the offset past the footer.
  - `calculate_check_code(mult_op, password)` – the login check code,
    `|mult_op * password| // 100 % 100`, where the password must start with a
    decimal integer that fits in 64 signed bits.
  - Constants `FOOTER_SIZE`, `MSG_SIZE_FIELD_SIZE` and `MSG_SIZE_BASE` (the
    MsgSize value of a message with no payload).
  - Every failure raises `ProtocolError`, a subclass of `ValueError`.
- **`taifexfeed.order_book`** – `OrderBook(product_id="", decimal_locator=0)`
  holds the bid and ask levels of one product plus its derived quotes
  (`derived_bid`, `derived_ask`, each a `PriceQuantityLevel` or `None`).
  `apply_snapshot(msg)` rebuilds the book from an I083 snapshot,
  `apply_update(msg)` applies the entries of an I081 update in order (new,
  change, delete, and overlay for derived quotes), and `reset()` clears it.
  `top_bids(n)` returns up to `n` bids highest first; `top_asks(n)` up to `n`
  asks lowest first. `last_prod_msg_seq` tracks the product sequence number.
  `apply_sign_to_price(magnitude, sign)` negates a positive price when the
  sign is `'-'`.
- **`taifexfeed.multicast`** – `MulticastReceiver(callback)` joins one or
  more UDP multicast groups. Add groups with
  `add_subscription(group_ip, port, local_interface_ip="")` before `start()`;
  each group then gets its own socket and thread, and every datagram is passed
  to `callback(data, group_ip, port)`. `stop()` joins the threads, closes the
  sockets and drops the subscriptions. The receiver is also a context manager
  that stops on exit, and exposes `running` and `subscriptions`.

## Installation

```
pip install .
```

Install the test extra to run the test suite:

```
pip install ".[test]"
pytest
```

## Examples

Packed BCD:

```python
from taifexfeed.bcd import ascii_to_pack_bcd, pack_bcd_to_ascii

packed = ascii_to_pack_bcd("12345")           # b"\x01\x23\x45"
assert pack_bcd_to_ascii(packed, 5) == "12345"
```

Hex dump of a byte sequence:

```python
from taifexfeed.hexutil import bytes_to_hex_string

assert bytes_to_hex_string(b"\xde\xad\xbe\xef") == "DEADBEEF"
```

Retransmission header and checksum:

```python
from taifexfeed.retrans_frame import (
    RetransmissionMsgHeader,
    calculate_retransmission_checksum,
)

header = RetransmissionMsgHeader(msg_size=14, msg_type=50, msg_seq_num=1)
wire = header.to_bytes()
parsed, offset = RetransmissionMsgHeader.from_bytes(wire)
assert parsed == header and offset == 16

assert calculate_retransmission_checksum(bytes([0xFF, 0x02])) == 0x01
```

Order book updates (messages are read by attribute):

```python
from types import SimpleNamespace
from taifexfeed.order_book import OrderBook, PriceQuantityLevel

book = OrderBook("TXF", 2)
entry = SimpleNamespace(md_entry_type="0", md_update_action="0",
                        md_entry_px=10000, md_entry_size=5, sign="0")
book.apply_update(SimpleNamespace(prod_msg_seq=1, md_entries=[entry]))
assert book.top_bids(1) == [PriceQuantityLevel(10000, 5)]
```

Receiving multicast datagrams:

```python
from taifexfeed.multicast import MulticastReceiver

def on_data(data, group_ip, port):
    print(group_ip, port, len(data))

with MulticastReceiver(on_data) as receiver:
    receiver.add_subscription("225.0.140.140", 14000)
    receiver.start()
    ...
```

Prices in order books are the scaled integers carried by the feed; the
product's decimal locator tells how to read them.

## What the package does not do

- It provides the retransmission header, timestamp, checksum and check-code
  helpers, but no classes for the individual retransmission messages (login,
  heartbeat, error notification, data request and data response), and no
  client that connects to a retransmission server.
- It does not parse market data messages (I001, I002, I010, I081, I083) from
  raw bytes; `OrderBook` takes already-parsed message objects.
- It does not tie multicast reception, deduplication and order books together
  into one feed handler, and it has no command-line program.