"""Sync orchestration: mirror an upstream collection into the store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import GitHubConfig
from .errors import MissingCredentials, UpstreamFetchFailed
from .github.paginator import Paginator
from .logging import get_logger
from .models import CollectionKind
from .stores import JsonStore

PaginatorFactory = Callable[[str], Paginator]


@dataclass
class SyncOutcome:
    """Result of a successful sync run."""

    kind: CollectionKind
    count: int


class SyncOrchestrator:
    """Replaces the persisted snapshot of a collection with a fresh upstream copy."""

    def __init__(
        self,
        store: JsonStore,
        paginator_factory: Optional[PaginatorFactory] = None,
        *,
        github_config: GitHubConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.github_config = github_config or GitHubConfig()
        self.paginator_factory = paginator_factory or self._default_paginator
        self.logger = logger or get_logger("orchestrator")

    def sync_all(self, kind: CollectionKind, token: str) -> int:
        """Fetch every item of `kind` and persist it; returns the number written.

        The store is only written after the whole collection has been fetched,
        so a failed fetch leaves the previous snapshot in place.
        """
        return self.run_sync(kind, token).count

    def run_sync(self, kind: CollectionKind, token: str) -> SyncOutcome:
        if not token:
            self.logger.warning("Sync attempted without token")
            raise MissingCredentials()

        self.logger.info("Starting GitHub sync", extra={"meta": {"kind": kind.value}})
        paginator = self.paginator_factory(token)
        try:
            items = paginator.fetch_all(kind)
        except UpstreamFetchFailed as exc:
            self._log_exception("GitHub sync failed", exc)
            raise

        with self.store.transaction(kind.items_key):
            self.store.write(kind.items_key, [item.to_dict() for item in items])
        self.logger.info(
            "GitHub sync completed",
            extra={"meta": {"kind": kind.value, "count": len(items)}},
        )
        return SyncOutcome(kind=kind, count=len(items))

    def _default_paginator(self, token: str) -> Paginator:
        return Paginator(token, config=self.github_config)

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc, extra={"meta": {"error": str(exc)}})


__all__ = ["PaginatorFactory", "SyncOrchestrator", "SyncOutcome"]
