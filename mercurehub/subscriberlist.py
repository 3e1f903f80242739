"""A set of subscribers with cached matching of updates."""

from __future__ import annotations

import itertools
import re
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Callable

from .update import Update

if TYPE_CHECKING:
    from .localsubscriber import LocalSubscriber

# A delimiter and an escape character that are unlikely to appear in topics.
_ESCAPE = "\x00"
_DELIM = "\x01"
_TO_ESCAPE = re.compile("[\x00\x01]")


def encode(topics: list[str], private: bool) -> str:
    """Encode sorted topics and the private flag into a single filter key."""
    parts = ["1" if private else "0"]
    parts.extend(_TO_ESCAPE.sub(lambda m: _ESCAPE + m.group(), t) for t in sorted(topics))
    return _DELIM.join(parts)


def decode(encoded: str) -> tuple[list[str], bool]:
    """Decode a filter key produced by encode into its topics and private flag."""
    topics: list[str] = []
    private = False
    private_extracted = False
    in_escape = False
    current: list[str] = []

    for char in encoded:
        if in_escape:
            current.append(char)
            in_escape = False
        elif char == _ESCAPE:
            in_escape = True
        elif char == _DELIM:
            if private_extracted:
                topics.append("".join(current))
            else:
                private = "".join(current) == "1"
                private_extracted = True
            current = []
        else:
            current.append(char)

    topics.append("".join(current))
    return topics, private


class SubscriberList:
    """Subscribers in insertion order, with an LRU cache of match results per filter."""

    def __init__(self, size: int) -> None:
        self._size = max(1, size)
        self._subscribers: dict[int, LocalSubscriber] = {}
        self._ids: dict[int, int] = {}
        self._next_id = itertools.count()
        self._cache: OrderedDict[str, dict[int, bool]] = OrderedDict()
        self._lock = threading.RLock()

    def match_any(self, update: Update) -> list[LocalSubscriber]:
        """Return the subscribers allowed to receive the update."""
        key = encode(update.topics, update.private)
        with self._lock:
            results = self._cache.get(key)
            if results is None:
                results = {}
                self._cache[key] = results
                while len(self._cache) > self._size:
                    self._cache.popitem(last=False)
            else:
                self._cache.move_to_end(key)

            topics, private = decode(key)
            matched = []
            for sid, subscriber in self._subscribers.items():
                if sid not in results:
                    results[sid] = subscriber.match_topics(topics, private)
                if results[sid]:
                    matched.append(subscriber)
            return matched

    def walk(self, start: int, callback: Callable[[LocalSubscriber], bool]) -> int:
        """Call callback on each subscriber whose position is at least start.

        Stops when the callback returns False and returns the position of that
        subscriber; otherwise returns the position following the last one.
        """
        with self._lock:
            entries = [(sid, s) for sid, s in self._subscribers.items() if sid >= start]
        position = start
        for sid, subscriber in entries:
            if not callback(subscriber):
                return sid
            position = sid + 1
        return position

    def add(self, subscriber: LocalSubscriber) -> None:
        """Add a subscriber."""
        with self._lock:
            if id(subscriber) in self._ids:
                return
            sid = next(self._next_id)
            self._ids[id(subscriber)] = sid
            self._subscribers[sid] = subscriber

    def remove(self, subscriber: LocalSubscriber) -> None:
        """Remove a subscriber; unknown subscribers are ignored."""
        with self._lock:
            sid = self._ids.pop(id(subscriber), None)
            if sid is None:
                return
            del self._subscribers[sid]
            for results in self._cache.values():
                results.pop(sid, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)


def get_subscribers(subscriber_list: SubscriberList) -> list[LocalSubscriber]:
    """Return every subscriber of the list in insertion order."""
    subscribers: list[LocalSubscriber] = []

    def collect(subscriber: LocalSubscriber) -> bool:
        subscribers.append(subscriber)
        return True

    subscriber_list.walk(0, collect)
    return subscribers