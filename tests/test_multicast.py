import errno
import socket
import threading
import time

import pytest

from taifexfeed.multicast import MulticastGroupSubscription, MulticastReceiver


class FakeSocket:
    def __init__(self, family, kind, proto, packets=()):
        self.family = family
        self.kind = kind
        self.options = []
        self.bound = None
        self.timeout = None
        self.closed = False
        self._packets = list(packets)
        self._lock = threading.Lock()

    def setsockopt(self, level, name, value):
        self.options.append((level, name, value))

    def bind(self, address):
        self.bound = address

    def settimeout(self, value):
        self.timeout = value

    def recvfrom(self, size):
        if self.closed:
            raise OSError(errno.EBADF, "closed")
        with self._lock:
            if self._packets:
                return self._packets.pop(0), ("192.0.2.1", 5000)
        time.sleep(0.005)
        raise socket.timeout("timed out")

    def close(self):
        self.closed = True


class Factory:
    def __init__(self, packets=()):
        self.packets = list(packets)
        self.sockets = []

    def __call__(self, family, kind, proto):
        sock = FakeSocket(family, kind, proto, self.packets)
        self.sockets.append(sock)
        return sock


def failing_factory(family, kind, proto):
    raise OSError("no sockets")


def test_add_subscription_records_config():
    receiver = MulticastReceiver(None, socket_factory=Factory())
    assert receiver.add_subscription("225.0.1.1", 10000) is True
    assert receiver.subscriptions == (MulticastGroupSubscription("225.0.1.1", 10000, ""),)


def test_subscription_rejects_bad_port():
    with pytest.raises(ValueError):
        MulticastGroupSubscription("225.0.1.1", 70000)


def test_start_without_subscriptions_fails():
    receiver = MulticastReceiver(None, socket_factory=Factory())
    assert receiver.start() is False
    assert receiver.running is False


def test_received_data_reaches_callback():
    got = []
    arrived = threading.Event()

    def callback(data, group_ip, port):
        got.append((data, group_ip, port))
        arrived.set()

    factory = Factory(packets=[b"\x1bpayload"])
    receiver = MulticastReceiver(callback, socket_factory=factory)
    receiver.add_subscription("225.0.1.1", 10000)
    assert receiver.start() is True
    try:
        assert arrived.wait(2.0)
    finally:
        receiver.stop()
    assert got[0] == (b"\x1bpayload", "225.0.1.1", 10000)


def test_socket_setup_binds_and_joins_group():
    factory = Factory()
    receiver = MulticastReceiver(None, socket_factory=factory)
    receiver.add_subscription("225.0.1.1", 10000)
    receiver.add_subscription("225.0.1.2", 10001, "192.0.2.10")
    assert receiver.start() is True
    first, second = factory.sockets
    receiver.stop()

    assert first.kind == socket.SOCK_DGRAM
    assert first.bound == ("", 10000)
    assert (socket.SOL_SOCKET, socket.SO_REUSEADDR, 1) in first.options
    assert (
        socket.IPPROTO_IP,
        socket.IP_ADD_MEMBERSHIP,
        socket.inet_aton("225.0.1.1") + socket.inet_aton("0.0.0.0"),
    ) in first.options
    assert (
        socket.IPPROTO_IP,
        socket.IP_ADD_MEMBERSHIP,
        socket.inet_aton("225.0.1.2") + socket.inet_aton("192.0.2.10"),
    ) in second.options
    assert first.timeout == 1.0


def test_cannot_add_subscription_while_running():
    receiver = MulticastReceiver(None, socket_factory=Factory())
    receiver.add_subscription("225.0.1.1", 10000)
    receiver.start()
    try:
        assert receiver.add_subscription("225.0.1.2", 10001) is False
        assert len(receiver.subscriptions) == 1
    finally:
        receiver.stop()


def test_start_twice_returns_true():
    receiver = MulticastReceiver(None, socket_factory=Factory())
    receiver.add_subscription("225.0.1.1", 10000)
    assert receiver.start() is True
    try:
        assert receiver.start() is True
        assert receiver.running is True
    finally:
        receiver.stop()


def test_stop_closes_sockets_and_clears_subscriptions():
    factory = Factory()
    receiver = MulticastReceiver(None, socket_factory=factory)
    receiver.add_subscription("225.0.1.1", 10000)
    receiver.start()
    receiver.stop()
    assert receiver.running is False
    assert receiver.subscriptions == ()
    assert all(sock.closed for sock in factory.sockets)


def test_start_fails_when_no_socket_can_be_created():
    receiver = MulticastReceiver(None, socket_factory=failing_factory)
    receiver.add_subscription("225.0.1.1", 10000)
    assert receiver.start() is False
    assert receiver.running is False


def test_invalid_group_address_is_skipped_and_closed():
    factory = Factory()
    receiver = MulticastReceiver(None, socket_factory=factory)
    receiver.add_subscription("not-an-address", 10000)
    assert receiver.start() is False
    assert factory.sockets[0].closed is True


def test_partial_failure_still_starts():
    factory = Factory()
    receiver = MulticastReceiver(None, socket_factory=factory)
    receiver.add_subscription("not-an-address", 10000)
    receiver.add_subscription("225.0.1.1", 10001)
    try:
        assert receiver.start() is True
        assert receiver.running is True
    finally:
        receiver.stop()


def test_context_manager_stops_receiver():
    factory = Factory()
    with MulticastReceiver(None, socket_factory=factory) as receiver:
        receiver.add_subscription("225.0.1.1", 10000)
        receiver.start()
        assert receiver.running is True
    assert receiver.running is False
    assert factory.sockets[0].closed is True