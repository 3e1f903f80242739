"""Subscribers connected to the current hub."""

from __future__ import annotations

import logging
import queue
import threading
import uuid
from collections import deque
from collections.abc import Iterator
from urllib.parse import quote_plus

from .subscriber import Subscriber
from .topicselector import TopicSelectorStore
from .update import Update

OUT_BUFFER_LENGTH = 1000


class LocalSubscriber(Subscriber):
    """A client subscribed to a list of topics on the current hub.

    Live updates are held back until ready() is called, so that updates coming
    from the history are received first.
    """

    def __init__(
        self,
        last_event_id: str = "",
        logger: logging.Logger | None = None,
        topic_selector_store: TopicSelectorStore | None = None,
    ) -> None:
        super().__init__(logger, topic_selector_store)
        self.id = f"urn:uuid:{uuid.uuid4()}"
        self.escaped_id = quote_plus(self.id, safe="")
        self.request_last_event_id = last_event_id

        self._disconnected = False
        self._closed = False
        self._out: deque[Update] = deque()
        self._out_cond = threading.Condition()
        self._ready = False
        self._live_queue: list[Update] = []
        self._live_lock = threading.Lock()
        self._response_last_event_id: queue.Queue[str] = queue.Queue(maxsize=1)

    @property
    def disconnected(self) -> bool:
        """Whether the subscriber no longer accepts updates."""
        return self._disconnected

    def dispatch(self, update: Update, from_history: bool) -> bool:
        """Queue an update for this subscriber; return False if it was not accepted.

        Topic matching must be checked before calling this method.
        """
        if self._disconnected:
            return False

        if not from_history and not self._ready:
            with self._live_lock:
                if not self._ready:
                    self._live_queue.append(update)
                    return True

        with self._out_cond:
            if self._disconnected:
                return False
            if len(self._out) < OUT_BUFFER_LENGTH:
                self._out.append(update)
                self._out_cond.notify_all()
                return True
            self._disconnected = True

        self._log_full()
        return False

    def ready(self) -> int:
        """Mark the subscriber ready and flush held live updates; return how many were flushed."""
        flushed = 0
        full = False
        with self._live_lock, self._out_cond:
            for update in self._live_queue:
                if len(self._out) >= OUT_BUFFER_LENGTH:
                    self._disconnected = True
                    full = True
                    break
                self._out.append(update)
                flushed += 1
            else:
                self._ready = True
                self._live_queue.clear()
            self._out_cond.notify_all()

        if full:
            self._log_full()
        return flushed

    def receive(self, timeout: float | None = None) -> Update | None:
        """Wait for the next update; return None once disconnected and drained.

        Raises TimeoutError if nothing arrives within the timeout.
        """
        with self._out_cond:
            if not self._out_cond.wait_for(lambda: bool(self._out) or self._closed, timeout):
                raise TimeoutError("no update received")
            if self._out:
                return self._out.popleft()
            return None

    def __iter__(self) -> Iterator[Update]:
        while (update := self.receive()) is not None:
            yield update

    def history_dispatched(self, response_last_event_id: str) -> None:
        """Signal that all updates coming from the history have been dispatched."""
        self._response_last_event_id.put(response_last_event_id)

    def response_last_event_id(self, timeout: float | None = None) -> str:
        """Wait for the last event ID reported by history_dispatched."""
        try:
            return self._response_last_event_id.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("history has not been dispatched") from None

    def disconnect(self) -> None:
        """Disconnect the subscriber; calling it again does nothing."""
        if self._disconnected:
            return
        with self._out_cond:
            self._disconnected = True
            self._closed = True
            self._out_cond.notify_all()

    def _log_full(self) -> None:
        self.logger.error(
            "subscriber unable to receive updates fast enough",
            extra={"subscriber": self.log_fields()},
        )