"""A transport without storage that broadcasts live updates to local subscribers."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .localsubscriber import LocalSubscriber
from .subscriberlist import SubscriberList, get_subscribers
from .transport import (
    EARLIEST_LAST_EVENT_ID,
    ClosedTransportError,
    Transport,
    register_transport_factory,
)
from .update import Update, assign_uuid

_SUBSCRIBER_LIST_SIZE = 100_000


class LocalTransport(Transport):
    """Broadcasts live updates to the subscribers of the current process."""

    def __init__(self) -> None:
        self.subscribers = SubscriberList(_SUBSCRIBER_LIST_SIZE)
        self.last_event_id = EARLIEST_LAST_EVENT_ID
        self._lock = threading.RLock()
        self._closed = threading.Event()
        self._close_lock = threading.Lock()

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise ClosedTransportError()

    def dispatch(self, update: Update) -> None:
        """Dispatch an update to all matching subscribers."""
        self._ensure_open()
        assign_uuid(update)
        for subscriber in self.subscribers.match_any(update):
            subscriber.dispatch(update, False)
        with self._lock:
            self.last_event_id = update.id

    def add_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Add a new subscriber to the transport."""
        self._ensure_open()
        with self._lock:
            self.subscribers.add(subscriber)
            if subscriber.request_last_event_id:
                subscriber.history_dispatched(EARLIEST_LAST_EVENT_ID)
            subscriber.ready()

    def remove_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Remove a subscriber from the transport."""
        self._ensure_open()
        with self._lock:
            self.subscribers.remove(subscriber)

    def get_subscribers(self) -> tuple[str, list[LocalSubscriber]]:
        """Return the last event ID and the active subscribers."""
        with self._lock:
            return self.last_event_id, get_subscribers(self.subscribers)

    def close(self) -> None:
        """Close the transport and disconnect every subscriber."""
        with self._close_lock:
            if self._closed.is_set():
                return
            with self._lock:
                self._closed.set()

                def disconnect(subscriber: LocalSubscriber) -> bool:
                    subscriber.disconnect()
                    return True

                self.subscribers.walk(0, disconnect)


def deprecated_new_local_transport(url: Any, logger: logging.Logger | None) -> LocalTransport:
    """Build a LocalTransport from a DSN; the DSN and the logger are ignored."""
    return LocalTransport()


register_transport_factory("local", deprecated_new_local_transport)