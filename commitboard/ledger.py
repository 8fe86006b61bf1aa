"""Append-only vote ledger enforcing one vote per (item, voter)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Callable, List, Optional

from .errors import DuplicateVote, InvalidRequest
from .logging import get_logger
from .models import Vote, parse_votes
from .stores import JsonStore

VOTES_KEY = "votes"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class VoteLedger:
    def __init__(
        self,
        store: JsonStore,
        *,
        clock: Callable[[], datetime] = _utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.logger = logger or get_logger("ledger")

    def votes(self) -> List[Vote]:
        return self.store.read(VOTES_KEY, [], parser=parse_votes)

    def record(
        self,
        item_id: Optional[str],
        voter_id: Optional[str],
        origin_address: Optional[str] = None,
    ) -> Vote:
        """Append a vote, raising DuplicateVote if this voter already voted for the item."""
        if not item_id or not voter_id:
            self.logger.warning(
                "Invalid vote request",
                extra={"meta": {"itemId": item_id, "voterId": voter_id}},
            )
            raise InvalidRequest("Missing required fields")

        with self.store.transaction(VOTES_KEY):
            votes = self.votes()
            if any(vote.item_id == item_id and vote.voter_id == voter_id for vote in votes):
                self.logger.warning(
                    "Duplicate vote attempt",
                    extra={"meta": {"itemId": item_id, "voterId": voter_id}},
                )
                raise DuplicateVote(item_id, voter_id)

            vote = Vote(
                item_id=item_id,
                voter_id=voter_id,
                timestamp=self.clock().astimezone(UTC).isoformat().replace("+00:00", "Z"),
                origin_address=origin_address,
            )
            votes.append(vote)
            self.store.write(VOTES_KEY, [entry.to_dict() for entry in votes])

        self.logger.info(
            "Vote recorded successfully",
            extra={"meta": {"itemId": item_id, "voterId": voter_id}},
        )
        return vote


__all__ = ["VOTES_KEY", "VoteLedger"]
