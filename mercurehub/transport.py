"""Transport interface, errors and the transport factory registry."""

from __future__ import annotations

import abc
import json
import threading
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import SplitResult, urlsplit

if TYPE_CHECKING:
    from .localsubscriber import LocalSubscriber
    from .update import Update

EARLIEST_LAST_EVENT_ID = "earliest"


class ClosedTransportError(Exception):
    """Raised by a transport's operations after it has been closed."""

    def __init__(self, message: str = "hub: read/write on closed Transport") -> None:
        super().__init__(message)


class TransportError(Exception):
    """Raised when a transport's DSN is invalid."""

    def __init__(self, dsn: str, msg: str = "", err: BaseException | None = None) -> None:
        self.dsn = dsn
        self.msg = msg
        self.err = err
        super().__init__(self._format())
        if err is not None:
            self.__cause__ = err

    def _format(self) -> str:
        dsn = json.dumps(self.dsn, ensure_ascii=False)
        if not self.msg:
            if self.err is None:
                return f"{dsn}: invalid transport"
            return f"{dsn}: invalid transport: {self.err}"
        if self.err is None:
            return f"{dsn}: invalid transport: {self.msg}"
        return f"{dsn}: {self.msg}: invalid transport: {self.err}"


class Transport(abc.ABC):
    """Dispatches and persists updates."""

    @abc.abstractmethod
    def dispatch(self, update: Update) -> None:
        """Dispatch an update to all subscribers."""

    @abc.abstractmethod
    def add_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Add a new subscriber to the transport."""

    @abc.abstractmethod
    def remove_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Remove a subscriber from the transport."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the transport."""


TransportFactory = Callable[[SplitResult, Any], Transport]

_factories: dict[str, TransportFactory] = {}
_factories_lock = threading.Lock()


def register_transport_factory(scheme: str, factory: TransportFactory) -> None:
    """Register the factory building transports for a URL scheme."""
    with _factories_lock:
        _factories[scheme] = factory


def _redacted(url: SplitResult) -> str:
    if url.password is None:
        return url.geturl()
    host = url.hostname or ""
    if url.port is not None:
        host = f"{host}:{url.port}"
    netloc = f"{url.username or ''}:xxxxx@{host}"
    return url._replace(netloc=netloc).geturl()


def new_transport(url: str | SplitResult, logger: Any) -> Transport:
    """Build a transport from a DSN using the registered factories."""
    parsed = urlsplit(url) if isinstance(url, str) else url
    with _factories_lock:
        factory = _factories.get(parsed.scheme)
    if factory is None:
        raise TransportError(_redacted(parsed), "no such transport available")
    return factory(parsed, logger)