"""Connectivity gate - reports and awaits network reachability.

How reachability is observed (OS path monitor, health check) lives outside
this package; whatever observes it calls ConnectivityMonitor.update() or,
when it knows more about the network path, ConnectivityMonitor.update_path().
One monitor is meant to be shared by every client in the process and passed
to them explicitly.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class ConnectionType(str, Enum):
    """Interface a satisfied network path goes through."""

    WIFI = "WiFi"
    CELLULAR = "Cellular"
    ETHERNET = "Ethernet"
    OTHER = "Other"
    NONE = "None"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class NetworkPath:
    """Snapshot of the current network path as reported by the observer."""

    connected: bool
    connection_type: ConnectionType = ConnectionType.UNKNOWN
    is_expensive: bool = False
    is_constrained: bool = False


ConnectionHandler = Callable[[bool], None]
PathHandler = Callable[[NetworkPath], None]


@runtime_checkable
class ConnectivityGate(Protocol):
    def is_connected(self) -> bool:
        ...

    def wait_for_connection(self, timeout: float | None = None) -> bool:
        """Block until connected. Returns False only if timeout expired first."""
        ...


class ConnectivityMonitor:
    """Thread-safe connectivity state with one-shot waiters.

    State, waiters, and handlers are guarded by a single lock. Each waiter is
    registered under its own id, released exactly once on the transition to
    connected, and removed in the same critical section. Events and handlers
    are fired after the lock is released.

    Usage:
        monitor = ConnectivityMonitor(connected=False)
        # reachability observer thread:
        monitor.update(True)
        # request threads:
        monitor.wait_for_connection()
    """

    def __init__(self, connected: bool = True) -> None:
        self._lock = threading.Lock()
        self._connected = connected
        self._path: NetworkPath | None = None
        self._waiters: dict[uuid.UUID, threading.Event] = {}
        self._handlers: dict[uuid.UUID, ConnectionHandler] = {}
        self._path_handlers: dict[uuid.UUID, PathHandler] = {}

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    @property
    def waiter_count(self) -> int:
        with self._lock:
            return len(self._waiters)

    @property
    def current_path(self) -> NetworkPath | None:
        with self._lock:
            return self._path

    @property
    def connection_type(self) -> ConnectionType:
        path = self.current_path
        return path.connection_type if path is not None else ConnectionType.UNKNOWN

    @property
    def is_expensive(self) -> bool:
        path = self.current_path
        return path is not None and path.is_expensive

    @property
    def is_constrained(self) -> bool:
        path = self.current_path
        return path is not None and path.is_constrained

    def update(self, connected: bool) -> None:
        """Record a reachability change from the external signal."""
        self._apply(connected, None)

    def update_path(self, path: NetworkPath) -> None:
        """Record a new path snapshot.

        Path handlers hear every snapshot; connection handlers and waiters
        only react when path.connected differs from the current state.
        """
        self._apply(path.connected, path)

    def _apply(self, connected: bool, path: NetworkPath | None) -> None:
        with self._lock:
            changed = connected != self._connected
            self._connected = connected
            if path is not None:
                self._path = path
            handlers = list(self._handlers.values()) if changed else []
            path_handlers = list(self._path_handlers.values()) if path is not None else []
            released: list[threading.Event] = []
            if changed and connected:
                released = list(self._waiters.values())
                self._waiters.clear()

        if changed:
            logger.info("Connectivity changed: %s", "connected" if connected else "disconnected")
        for event in released:
            event.set()
        for handler in handlers:
            self._call_handler(handler, connected)
        for path_handler in path_handlers:
            self._call_handler(path_handler, path)

    def wait_for_connection(self, timeout: float | None = None) -> bool:
        with self._lock:
            if self._connected:
                return True
            waiter_id = uuid.uuid4()
            event = threading.Event()
            self._waiters[waiter_id] = event

        logger.debug("Waiting for connectivity")
        if event.wait(timeout):
            return True

        with self._lock:
            self._waiters.pop(waiter_id, None)
        # update() may have released us between the timeout and the lock
        return event.is_set()

    def add_connection_handler(self, handler: ConnectionHandler) -> uuid.UUID:
        """Register handler; it is called now with the current state, then on every change."""
        handler_id = uuid.uuid4()
        with self._lock:
            self._handlers[handler_id] = handler
            current = self._connected
        self._call_handler(handler, current)
        return handler_id

    def remove_connection_handler(self, handler_id: uuid.UUID) -> None:
        with self._lock:
            self._handlers.pop(handler_id, None)

    def add_path_handler(self, handler: PathHandler) -> uuid.UUID:
        """Register handler; it is called now if a path is known, then on every snapshot."""
        handler_id = uuid.uuid4()
        with self._lock:
            self._path_handlers[handler_id] = handler
            current = self._path
        if current is not None:
            self._call_handler(handler, current)
        return handler_id

    def remove_path_handler(self, handler_id: uuid.UUID) -> None:
        with self._lock:
            self._path_handlers.pop(handler_id, None)

    @staticmethod
    def _call_handler(handler: Callable[[Any], None], value: Any) -> None:
        # One failing handler must not keep the others from hearing the change.
        try:
            handler(value)
        except Exception:
            logger.exception("Connectivity handler %r failed", handler)


class AlwaysConnected:
    """Gate for environments with no reachability signal."""

    def is_connected(self) -> bool:
        return True

    def wait_for_connection(self, timeout: float | None = None) -> bool:
        return True
