"""A transport sharing updates between hubs through Redis publish/subscribe."""

from __future__ import annotations

import dataclasses
import logging
import queue
import threading
from typing import Any

import redis

from .localsubscriber import LocalSubscriber
from .subscriberlist import SubscriberList, get_subscribers
from .transport import ClosedTransportError, Transport
from .update import Update, assign_uuid

LAST_EVENT_ID_KEY = "lastEventID"
PUBLISH_SCRIPT = """
redis.call("SET", KEYS[1], ARGV[1])
redis.call("PUBLISH", ARGV[2], ARGV[3])
return true
"""

_POLL_INTERVAL = 0.05
_MESSAGE_TYPES = ("message", "pmessage")


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, (bytes, bytearray)) else str(value)


class RedisTransport(Transport):
    """Publishes updates to a Redis channel and dispatches those received from it."""

    def __init__(
        self,
        logger: logging.Logger | None,
        client: Any,
        subscribers_size: int,
        dispatcher_pool_size: int,
        redis_channel: str,
    ) -> None:
        self.logger = logger if logger is not None else logging.getLogger("mercurehub")
        self.client = client
        self.subscribers = SubscriberList(subscribers_size)
        self.redis_channel = redis_channel
        self._lock = threading.RLock()
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self._dispatcher: queue.Queue[tuple[LocalSubscriber, Update]] = queue.Queue()

        self._pubsub = client.pubsub()
        self._pubsub.psubscribe(redis_channel)

        self._subscribe_thread = threading.Thread(target=self._subscribe, daemon=True)
        self._subscribe_thread.start()
        self._workers = [
            threading.Thread(target=self._dispatch_loop, daemon=True)
            for _ in range(max(1, dispatcher_pool_size))
        ]
        for worker in self._workers:
            worker.start()

    def _ensure_open(self) -> None:
        if self._closed.is_set():
            raise ClosedTransportError()

    def dispatch(self, update: Update) -> None:
        """Store the update ID as the last one and publish the update."""
        self._ensure_open()
        assign_uuid(update)
        try:
            self.client.eval(
                PUBLISH_SCRIPT,
                1,
                LAST_EVENT_ID_KEY,
                update.id,
                self.redis_channel,
                update.to_json(),
            )
        except redis.exceptions.RedisError as err:
            raise RuntimeError(f"redis failed to publish: {err}") from err

    def add_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Add a new subscriber to the transport."""
        self._ensure_open()
        with self._lock:
            self.subscribers.add(subscriber)
        subscriber.ready()

    def remove_subscriber(self, subscriber: LocalSubscriber) -> None:
        """Remove a subscriber from the transport."""
        self._ensure_open()
        with self._lock:
            self.subscribers.remove(subscriber)

    def get_subscribers(self) -> tuple[str, list[LocalSubscriber]]:
        """Return the last event ID stored in Redis and the active subscribers."""
        self._ensure_open()
        with self._lock:
            try:
                last_event_id = self.client.get(LAST_EVENT_ID_KEY)
            except redis.exceptions.RedisError as err:
                raise RuntimeError(f"redis failed to get last event id: {err}") from err
            if last_event_id is None:
                raise RuntimeError("redis failed to get last event id: key not found")
            return _text(last_event_id), get_subscribers(self.subscribers)

    def close(self) -> None:
        """Disconnect every subscriber and release the Redis connections."""
        with self._close_lock:
            if self._closed.is_set():
                return
            with self._lock:

                def disconnect(subscriber: LocalSubscriber) -> bool:
                    subscriber.disconnect()
                    return True

                self.subscribers.walk(0, disconnect)
                self._closed.set()

        self._subscribe_thread.join(timeout=1)
        for resource in (self._pubsub, self.client):
            try:
                resource.close()
            except redis.exceptions.RedisError as err:
                self.logger.error(str(err))

    def _subscribe(self) -> None:
        while not self._closed.is_set():
            try:
                message = self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=_POLL_INTERVAL
                )
            except Exception as err:  # noqa: BLE001 - the connection may fail in many ways
                if self._closed.is_set():
                    return
                self.logger.error(str(err))
                self._closed.wait(_POLL_INTERVAL)
                continue

            if message is None or message.get("type") not in _MESSAGE_TYPES:
                continue

            try:
                update = Update.from_json(message["data"])
            except (ValueError, TypeError) as err:
                self.logger.error(str(err))
                continue

            with self._lock:
                for subscriber in self.subscribers.match_any(update):
                    copy = dataclasses.replace(update, topics=list(update.topics))
                    self._dispatcher.put((subscriber, copy))

    def _dispatch_loop(self) -> None:
        while not self._closed.is_set():
            try:
                subscriber, update = self._dispatcher.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            subscriber.dispatch(update, False)


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, 6379
    try:
        return host or "localhost", int(port)
    except ValueError:
        raise ValueError(f"invalid Redis address {address!r}") from None


def new_redis_transport(
    logger: logging.Logger | None,
    address: str,
    username: str,
    password: str,
    subscribers_size: int,
    dispatcher_pool_size: int,
    redis_channel: str,
) -> RedisTransport:
    """Connect to Redis and build a transport; raise ConnectionError if Redis is unreachable."""
    host, port = _parse_address(address)
    client = redis.Redis(
        host=host,
        port=port,
        username=username or None,
        password=password or None,
    )
    try:
        pong = client.ping()
    except redis.exceptions.RedisError as err:
        raise ConnectionError(f"failed to connect to Redis: {err}") from err
    if not pong:
        raise ConnectionError("failed to connect to Redis: no PONG received")

    return RedisTransport(logger, client, subscribers_size, dispatcher_pool_size, redis_channel)