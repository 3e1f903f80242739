"""Topic selector matching with URI templates and an optional sharded LRU cache."""

from __future__ import annotations

import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Protocol

DEFAULT_TOPIC_SELECTOR_STORE_LRU_MAX_ENTRIES_PER_SHARD = 10_000
DEFAULT_TOPIC_SELECTOR_STORE_LRU_SHARD_COUNT = 256  # 2.5 million entries.

_UNRESERVED = r"A-Za-z0-9\-._~"
_RESERVED = r":/?#\[\]@!$&'()*+,;="
_PCT_ENCODED = r"%[0-9A-Fa-f]{2}"
_VARCHAR = rf"(?:[A-Za-z0-9_]|{_PCT_ENCODED})"
_VARSPEC = re.compile(
    rf"({_VARCHAR}+(?:\.{_VARCHAR}+)*)(?::[1-9][0-9]{{0,3}}|\*)?"
)
_RESERVED_OPERATORS = frozenset("=,!@|")


@dataclass(frozen=True)
class _Operator:
    first: str
    sep: str
    named: bool
    ifemp: str
    allow_reserved: bool


_OPERATORS = {
    "": _Operator("", ",", False, "", False),
    "+": _Operator("", ",", False, "", True),
    ".": _Operator(".", ".", False, "", False),
    "/": _Operator("/", "/", False, "", False),
    ";": _Operator(";", ";", True, "", False),
    "?": _Operator("?", "&", True, "=", False),
    "&": _Operator("&", "&", True, "=", False),
    "#": _Operator("#", ",", False, "", True),
}


def _expression_regexp(body: str) -> str:
    if not body:
        raise ValueError("empty expression")

    op_char = body[0] if body[0] in _OPERATORS and body[0] != "" else ""
    if body[0] in _RESERVED_OPERATORS:
        raise ValueError(f"unsupported operator {body[0]!r}")
    operator = _OPERATORS[op_char]

    names = []
    for spec in body[len(op_char):].split(","):
        found = _VARSPEC.fullmatch(spec)
        if found is None:
            raise ValueError(f"invalid variable specification {spec!r}")
        names.append(found.group(1))

    if operator.allow_reserved:
        allowed = _UNRESERVED + _RESERVED
    elif operator.sep == ",":
        allowed = _UNRESERVED
    else:
        allowed = _UNRESERVED + ","
    value = rf"(?:[{allowed}]|{_PCT_ENCODED})*"

    if operator.named:
        name_re = "(?:" + "|".join(re.escape(name) for name in names) + ")"
        if operator.ifemp:
            item = f"{name_re}={value}"
        else:
            item = f"{name_re}(?:={value})?"
    else:
        item = value

    first = re.escape(operator.first)
    if re.fullmatch(f"[{allowed}]", operator.sep):
        # The separator is already a valid value character.
        return f"(?:{first}{item})?"
    return f"(?:{first}{item}(?:{re.escape(operator.sep)}{item})*)?"


def template_regexp(template: str) -> re.Pattern[str]:
    """Compile a URI template into a regular expression matching its expansions.

    Raises ValueError if the template is malformed.
    """
    parts = [r"\A"]
    pos = 0
    while pos < len(template):
        start = template.find("{", pos)
        literal_end = len(template) if start == -1 else start
        literal = template[pos:literal_end]
        if "}" in literal:
            raise ValueError(f"unexpected '}}' in template {template!r}")
        parts.append(re.escape(literal))
        if start == -1:
            break
        end = template.find("}", start)
        if end == -1:
            raise ValueError(f"unclosed expression in template {template!r}")
        parts.append(_expression_regexp(template[start + 1:end]))
        pos = end + 1
    parts.append(r"\Z")
    return re.compile("".join(parts))


class TopicSelectorStoreCache(Protocol):
    """Cache used by a TopicSelectorStore."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, cost: int) -> bool: ...


@dataclass
class TopicSelectorStore:
    """Matches topics against selectors, caching compiled templates and results."""

    cache: TopicSelectorStoreCache | None = None
    skip_select: bool = False

    def match(self, topic: str, topic_selector: str) -> bool:
        """Tell whether the topic is selected by the given topic selector."""
        if topic_selector == "*" or topic == topic_selector:
            return True

        key = ""
        if self.cache is not None:
            key = f"m_{topic_selector}_{topic}"
            cached = self.cache.get(key)
            if cached is not None:
                return bool(cached)

        pattern = self.get_regexp(topic_selector)
        if pattern is None:
            return False

        matched = pattern.match(topic) is not None
        if self.cache is not None:
            self.cache.set(key, matched, 4)
        return matched

    def get_regexp(self, topic_selector: str) -> re.Pattern[str] | None:
        """Return the regexp of a URI template selector, or None for a raw string."""
        if "{" not in topic_selector:
            return None

        key = ""
        if self.cache is not None:
            key = f"t_{topic_selector}"
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            pattern = template_regexp(topic_selector)
        except ValueError:
            return None

        if self.cache is not None:
            self.cache.set(key, pattern, 19)
        return pattern


class _LRUShard:
    def __init__(self, max_entries: int) -> None:
        self._max_entries = max_entries
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            if key not in self._entries:
                return None
            self._entries.move_to_end(key)
            return self._entries[key]

    def add(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


def _fnv32a(data: bytes) -> int:
    h = 0x811C9DC5
    for byte in data:
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


class ShardedLRUCache:
    """An LRU cache split into shards chosen by the FNV-1a hash of the key."""

    def __init__(self, max_entries_per_shard: int, shard_count: int) -> None:
        if max_entries_per_shard <= 0 or shard_count <= 0:
            raise ValueError("shard size and shard count must be positive")
        self._shards = [_LRUShard(max_entries_per_shard) for _ in range(shard_count)]

    def _shard(self, key: str) -> _LRUShard:
        return self._shards[_fnv32a(key.encode()) % len(self._shards)]

    def get(self, key: str) -> Any:
        """Return the cached value, or None when absent."""
        return self._shard(key).get(key)

    def set(self, key: str, value: Any, cost: int) -> bool:
        """Store a value; the cost is ignored."""
        self._shard(key).add(key, value)
        return True

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._shard(key)


def new_topic_selector_store_lru(
    max_entries_per_shard: int, shard_count: int
) -> TopicSelectorStore:
    """Create a TopicSelectorStore backed by a sharded LRU cache."""
    if max_entries_per_shard == 0:
        return TopicSelectorStore()
    if shard_count == 0:
        shard_count = DEFAULT_TOPIC_SELECTOR_STORE_LRU_SHARD_COUNT
    return TopicSelectorStore(
        cache=ShardedLRUCache(max_entries_per_shard, shard_count), skip_select=True
    )