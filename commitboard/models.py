"""Core data models shared across commitboard components."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

_ITEM_REQUIRED = ("id", "message", "author", "date", "link")
_VOTE_ALIASES = {
    "itemId": ("itemId", "commitId"),
    "voterId": ("voterId", "userId"),
    "originAddress": ("originAddress", "ip"),
}


class DocumentSchemaError(ValueError):
    """Raised when a persisted document does not match its expected shape."""


class CollectionKind(str, Enum):
    """Upstream collections that can be mirrored."""

    COMMITS = "commits"
    PULLS = "pulls"

    @property
    def items_key(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "CollectionKind":
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(kind.value for kind in cls)
            raise ValueError(f"Unknown collection kind '{value}' (expected one of: {choices})") from None


@dataclass
class CanonicalItem:
    """Normalized representation of one upstream commit or pull request."""

    id: str
    message: str
    author: str
    date: str
    link: str
    description: Optional[str] = None
    state: Optional[str] = None
    merged: Optional[bool] = None
    merged_at: Optional[str] = None

    @property
    def is_pull_request(self) -> bool:
        return self.state is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "author": self.author,
            "date": self.date,
            "link": self.link,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.is_pull_request:
            data["state"] = self.state
            data["merged"] = bool(self.merged)
            data["mergedAt"] = self.merged_at
        return data

    @classmethod
    def from_dict(cls, payload: object) -> "CanonicalItem":
        if not isinstance(payload, dict):
            raise DocumentSchemaError("item entry must be an object")
        for key in _ITEM_REQUIRED:
            if not isinstance(payload.get(key), str):
                raise DocumentSchemaError(f"item entry is missing string field '{key}'")
        description = payload.get("description")
        state = payload.get("state")
        merged_at = payload.get("mergedAt")
        return cls(
            id=payload["id"],
            message=payload["message"],
            author=payload["author"],
            date=payload["date"],
            link=payload["link"],
            description=description if isinstance(description, str) else None,
            state=state if isinstance(state, str) else None,
            merged=bool(payload.get("merged")) if state is not None else None,
            merged_at=merged_at if isinstance(merged_at, str) else None,
        )


@dataclass
class Vote:
    """One upvote recorded in the ledger."""

    item_id: str
    voter_id: str
    timestamp: str
    origin_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "itemId": self.item_id,
            "voterId": self.voter_id,
            "timestamp": self.timestamp,
        }
        if self.origin_address is not None:
            data["originAddress"] = self.origin_address
        return data

    @classmethod
    def from_dict(cls, payload: object) -> "Vote":
        if not isinstance(payload, dict):
            raise DocumentSchemaError("vote entry must be an object")
        values: Dict[str, Optional[str]] = {}
        for name, aliases in _VOTE_ALIASES.items():
            values[name] = next(
                (payload[alias] for alias in aliases if isinstance(payload.get(alias), str)),
                None,
            )
        timestamp = payload.get("timestamp")
        if values["itemId"] is None or values["voterId"] is None or not isinstance(timestamp, str):
            raise DocumentSchemaError("vote entry requires itemId, voterId and timestamp")
        return cls(
            item_id=values["itemId"],
            voter_id=values["voterId"],
            timestamp=timestamp,
            origin_address=values["originAddress"],
        )


@dataclass
class RankedItem:
    """Canonical item augmented with its vote count."""

    item: CanonicalItem
    upvotes: int = 0

    def matches(self, term: str) -> bool:
        """Return True when `term` (already lower-cased) occurs in message, author or description."""
        fields = [self.item.message, self.item.author]
        if self.item.description:
            fields.append(self.item.description)
        return any(term in value.lower() for value in fields)

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data["upvotes"] = self.upvotes
        return data


def parse_items(document: object) -> List[CanonicalItem]:
    """Validate an items document and return typed entries."""
    if not isinstance(document, list):
        raise DocumentSchemaError("items document must be a list")
    return [CanonicalItem.from_dict(entry) for entry in document]


def parse_votes(document: object) -> List[Vote]:
    """Validate a votes document and return typed entries."""
    if not isinstance(document, list):
        raise DocumentSchemaError("votes document must be a list")
    return [Vote.from_dict(entry) for entry in document]


__all__ = [
    "CanonicalItem",
    "CollectionKind",
    "DocumentSchemaError",
    "RankedItem",
    "Vote",
    "parse_items",
    "parse_votes",
]
