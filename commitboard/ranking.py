"""Ranked, searchable view joining mirrored items with their vote counts."""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional

from .ledger import VOTES_KEY
from .logging import get_logger
from .models import CollectionKind, RankedItem, parse_items, parse_votes
from .stores import JsonStore


class RankingView:
    """Recomputes the leaderboard from persisted items and votes on every call."""

    def __init__(self, store: JsonStore, *, logger: logging.Logger | None = None) -> None:
        self.store = store
        self.logger = logger or get_logger("ranking")

    def list(
        self,
        kind: CollectionKind = CollectionKind.COMMITS,
        search: Optional[str] = None,
    ) -> List[RankedItem]:
        items = self.store.read(kind.items_key, [], parser=parse_items)
        votes = self.store.read(VOTES_KEY, [], parser=parse_votes)

        counts = Counter(vote.item_id for vote in votes)
        ranked = [RankedItem(item=item, upvotes=counts.get(item.id, 0)) for item in items]
        # sorted() is stable, so ties keep the persisted order.
        ranked = sorted(ranked, key=lambda entry: entry.upvotes, reverse=True)

        term = search.lower() if search else None
        if term:
            ranked = [entry for entry in ranked if entry.matches(term)]

        self.logger.info(
            "%s retrieved successfully",
            kind.value.capitalize(),
            extra={"meta": {"total": len(ranked), "searchTerm": term or "none"}},
        )
        return ranked


__all__ = ["RankingView"]
