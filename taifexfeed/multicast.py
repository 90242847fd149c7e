"""Reception of UDP multicast feeds, one thread per subscribed group."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Optional

__all__ = ["MulticastGroupSubscription", "MulticastReceiver", "DataCallback"]

_log = logging.getLogger(__name__)

BUFFER_SIZE = 65535
"""Largest datagram read in one call."""

RECEIVE_TIMEOUT = 1.0
"""Seconds a receive waits before the loop checks whether to stop."""

_ERROR_BACKOFF = 0.01

DataCallback = Callable[[bytes, str, int], Any]
"""Called with the datagram, the group IP and the group port."""

SocketFactory = Callable[[int, int, int], Any]


@dataclass(frozen=True)
class MulticastGroupSubscription:
    """A multicast group to join and the local interface to join it on.

    An empty ``local_interface_ip`` lets the system choose the interface.
    """

    group_ip: str
    port: int
    local_interface_ip: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port {self.port} is outside 0..65535")


@dataclass
class _ActiveSubscription:
    config: MulticastGroupSubscription
    sock: Optional[Any] = None
    thread: Optional[threading.Thread] = None
    keep_running: threading.Event = field(default_factory=threading.Event)


def _membership_request(config: MulticastGroupSubscription) -> bytes:
    interface = config.local_interface_ip or "0.0.0.0"
    return socket.inet_aton(config.group_ip) + socket.inet_aton(interface)


class MulticastReceiver:
    """Receives datagrams from one or more multicast groups.

    Subscriptions are added before :meth:`start`; each then gets its own
    socket and thread, and every datagram is passed to the callback.
    :meth:`stop` joins the threads, closes the sockets and drops the
    subscriptions.
    """

    def __init__(
        self,
        callback: Optional[DataCallback],
        *,
        socket_factory: SocketFactory = socket.socket,
    ) -> None:
        self._callback = callback
        self._socket_factory = socket_factory
        self._subscriptions: list[_ActiveSubscription] = []
        self._running = threading.Event()
        _log.info("MulticastReceiver created.")

    def __enter__(self) -> MulticastReceiver:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        """Whether the receiver has been started and not yet stopped."""
        return self._running.is_set()

    @property
    def subscriptions(self) -> tuple[MulticastGroupSubscription, ...]:
        """The subscriptions currently held."""
        return tuple(sub.config for sub in self._subscriptions)

    def add_subscription(
        self, group_ip: str, port: int, local_interface_ip: str = ""
    ) -> bool:
        """Add a group to join on the next start; False while running."""
        if self.running:
            _log.warning("Cannot add subscription while receiver is running.")
            return False
        config = MulticastGroupSubscription(group_ip, port, local_interface_ip)
        self._subscriptions.append(_ActiveSubscription(config))
        _log.info("Added subscription for %s:%d", group_ip, port)
        return True

    def start(self) -> bool:
        """Open a socket and thread for every subscription.

        Returns False when there is nothing to start or no subscription
        could be started; subscriptions that fail are skipped.
        """
        if self.running:
            _log.warning("MulticastReceiver already running.")
            return True
        if not self._subscriptions:
            _log.warning("No subscriptions to start.")
            return False

        self._running.set()
        any_started = False
        for sub in self._subscriptions:
            sock = self._open_socket(sub.config)
            if sock is None:
                continue
            sub.sock = sock
            sub.keep_running.set()
            sub.thread = threading.Thread(
                target=self._receive_loop,
                args=(sub,),
                name=f"multicast-{sub.config.group_ip}:{sub.config.port}",
                daemon=True,
            )
            sub.thread.start()
            _log.info("Started listening on %s:%d", sub.config.group_ip, sub.config.port)
            any_started = True

        if not any_started:
            _log.error("No multicast subscriptions could be started.")
            self._running.clear()
            return False
        return True

    def stop(self) -> None:
        """Stop all threads, close all sockets and drop the subscriptions."""
        if not self.running:
            return
        self._running.clear()
        _log.info("Stopping MulticastReceiver threads...")
        for sub in self._subscriptions:
            sub.keep_running.clear()
            if sub.thread is not None and sub.thread.is_alive():
                sub.thread.join()
                _log.debug("Joined thread for %s", sub.config.group_ip)
            sub.thread = None
            if sub.sock is not None:
                sub.sock.close()
                sub.sock = None
                _log.debug("Closed socket for %s", sub.config.group_ip)
        self._subscriptions.clear()
        _log.info("MulticastReceiver stopped.")

    def _open_socket(self, config: MulticastGroupSubscription) -> Optional[Any]:
        try:
            sock = self._socket_factory(socket.AF_INET, socket.SOCK_DGRAM, 0)
        except OSError as exc:
            _log.error("Failed to create socket for %s: %s", config.group_ip, exc)
            return None
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", config.port))
            sock.setsockopt(
                socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, _membership_request(config)
            )
        except OSError as exc:
            _log.error(
                "Failed to set up socket for %s:%d: %s",
                config.group_ip,
                config.port,
                exc,
            )
            sock.close()
            return None
        try:
            sock.settimeout(RECEIVE_TIMEOUT)
        except OSError:
            _log.warning(
                "Failed to set receive timeout for %s. Loop may be less responsive to stop().",
                config.group_ip,
            )
        return sock

    def _should_run(self, sub: _ActiveSubscription) -> bool:
        return self._running.is_set() and sub.keep_running.is_set()

    def _receive_loop(self, sub: _ActiveSubscription) -> None:
        sock = sub.sock
        config = sub.config
        if sock is None:
            _log.error("Invalid socket for receive loop for %s", config.group_ip)
            return
        _log.debug("Receive loop started for %s:%d", config.group_ip, config.port)
        while self._should_run(sub):
            try:
                data, _sender = sock.recvfrom(BUFFER_SIZE)
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._should_run(sub):
                    _log.info(
                        "recvfrom interrupted or socket closed on %s, likely due to stop().",
                        config.group_ip,
                    )
                    break
                _log.error("recvfrom error on %s: %s", config.group_ip, exc)
                time.sleep(_ERROR_BACKOFF)
                continue
            if data and self._callback is not None:
                self._callback(bytes(data), config.group_ip, config.port)
        _log.debug("Receive loop ended for %s:%d", config.group_ip, config.port)