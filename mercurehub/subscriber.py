"""Subscribers, their topic matching and the subscriptions they expose."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote_plus

from .topicselector import TopicSelectorStore
from .update import Update

JSONLD_CONTEXT = "https://mercure.rocks/"
SUBSCRIPTIONS_PREFIX = "/.well-known/mercure/subscriptions/"


@dataclass
class Subscription:
    """A subscription of a subscriber to one topic selector."""

    id: str
    subscriber: str
    topic: str
    active: bool
    context: str = ""
    type: str = "Subscription"
    last_event_id: str = ""
    payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-LD representation, leaving out empty optional fields."""
        result: dict[str, Any] = {}
        if self.context:
            result["@context"] = self.context
        result["id"] = self.id
        result["type"] = self.type
        result["subscriber"] = self.subscriber
        result["topic"] = self.topic
        result["active"] = self.active
        if self.last_event_id:
            result["lastEventID"] = self.last_event_id
        if self.payload is not None:
            result["payload"] = self.payload
        return result


def escape_topics(topics: Iterable[str]) -> list[str]:
    """Escape every topic so that it can be used in a query string or a path segment."""
    return [quote_plus(topic, safe="") for topic in topics]


def _claims_payload(claims: Any) -> Any:
    if not isinstance(claims, Mapping):
        return None
    mercure = claims.get("mercure")
    if not isinstance(mercure, Mapping):
        return None
    return mercure.get("payload")


class Subscriber:
    """A client subscribed to a list of topics on a remote or on the current hub."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        topic_selector_store: TopicSelectorStore | None = None,
    ) -> None:
        self.id = ""
        self.escaped_id = ""
        self.claims: Mapping[str, Any] | None = None
        self.escaped_topics: list[str] = []
        self.request_last_event_id = ""
        self.remote_addr = ""
        self.subscribed_topics: list[str] | None = None
        self.allowed_private_topics: list[str] | None = None
        self.logger = logger if logger is not None else logging.getLogger("mercurehub")
        self.topic_selector_store = (
            topic_selector_store if topic_selector_store is not None else TopicSelectorStore()
        )

    def set_topics(
        self,
        subscribed_topics: list[str] | None,
        allowed_private_topics: list[str] | None,
    ) -> None:
        """Set the subscribed topic selectors and the private ones allowed."""
        self.subscribed_topics = subscribed_topics
        self.allowed_private_topics = allowed_private_topics
        self.escaped_topics = escape_topics(subscribed_topics or ())

    def match_topics(self, topics: Iterable[str], private: bool) -> bool:
        """Tell whether this subscriber may receive an update having these topics."""
        subscribed = False
        can_access = not private
        match = self.topic_selector_store.match

        for topic in topics:
            if not subscribed:
                subscribed = any(match(topic, ts) for ts in self.subscribed_topics or ())
            if not can_access:
                can_access = any(match(topic, ts) for ts in self.allowed_private_topics or ())

        return subscribed and can_access

    def match(self, update: Update) -> bool:
        """Tell whether this subscriber may receive the given update."""
        return self.match_topics(update.topics, update.private)

    def get_subscriptions(self, topic: str, context: str, active: bool) -> list[Subscription]:
        """List the subscriptions of this subscriber, restricted to a topic if one is given."""
        payload = _claims_payload(self.claims)
        subscriptions = []
        for selector, escaped in zip(self.subscribed_topics or (), self.escaped_topics):
            if topic and (not self.match_topics([topic], False) or selector != topic):
                continue
            subscriptions.append(
                Subscription(
                    id=f"{SUBSCRIPTIONS_PREFIX}{escaped}/{self.escaped_id}",
                    subscriber=self.id,
                    topic=selector,
                    active=active,
                    context=context,
                    payload=payload,
                )
            )
        return subscriptions

    def log_fields(self) -> dict[str, Any]:
        """Return the fields describing this subscriber in logs."""
        fields: dict[str, Any] = {
            "id": self.id,
            "last_event_id": self.request_last_event_id,
        }
        if self.remote_addr:
            fields["remote_addr"] = self.remote_addr
        if self.allowed_private_topics is not None:
            fields["topic_selectors"] = list(self.allowed_private_topics)
        if self.subscribed_topics is not None:
            fields["topics"] = list(self.subscribed_topics)
        return fields