"""Updates sent to subscribers."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Update:
    """An update to send to subscribers.

    The first topic is the canonical IRI, the next ones are alternate IRIs.
    """

    topics: list[str] = field(default_factory=list)
    private: bool = False
    debug: bool = False
    data: str = ""
    id: str = ""
    type: str = ""
    retry: int = 0

    def log_fields(self) -> dict[str, Any]:
        """Return the fields describing this update in logs."""
        fields: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "retry": self.retry,
            "topics": list(self.topics),
            "private": self.private,
        }
        if self.debug:
            fields["data"] = self.data
        return fields

    def to_json(self) -> str:
        """Serialize the update to JSON."""
        return json.dumps(
            {
                "Topics": list(self.topics),
                "Private": self.private,
                "Debug": self.debug,
                "Data": self.data,
                "ID": self.id,
                "Type": self.type,
                "Retry": self.retry,
            }
        )

    @classmethod
    def from_json(cls, payload: str | bytes) -> Update:
        """Build an update from its JSON form; raises ValueError on bad input."""
        decoded = json.loads(payload)
        if not isinstance(decoded, dict):
            raise ValueError("update payload must be a JSON object")
        topics = decoded.get("Topics") or []
        if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
            raise ValueError("update topics must be a list of strings")
        retry = decoded.get("Retry", 0)
        if not isinstance(retry, int) or isinstance(retry, bool) or retry < 0:
            raise ValueError("update retry must be a non-negative integer")
        return cls(
            topics=list(topics),
            private=bool(decoded.get("Private", False)),
            debug=bool(decoded.get("Debug", False)),
            data=str(decoded.get("Data", "")),
            id=str(decoded.get("ID", "")),
            type=str(decoded.get("Type", "")),
            retry=retry,
        )


def assign_uuid(update: Update) -> None:
    """Give the update a new URN UUID if it has no ID yet."""
    if not update.id:
        update.id = f"urn:uuid:{uuid.uuid4()}"