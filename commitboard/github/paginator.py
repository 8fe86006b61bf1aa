"""Paginated fetching and normalization of GitHub commits and pull requests."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Set

import requests

from ..config import GitHubConfig
from ..errors import UpstreamFetchFailed
from ..logging import get_logger
from ..models import CanonicalItem, CollectionKind

GITHUB_ACCEPT = "application/vnd.github.v3+json"


class Paginator:
    """Fetches every page of a repository collection using one credential."""

    def __init__(
        self,
        token: str,
        *,
        config: GitHubConfig | None = None,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.token = token
        self.config = config or GitHubConfig()
        self.session = session or requests.Session()
        self.logger = logger or get_logger("paginator")
        self.headers = {
            "Authorization": f"token {self.token}",
            "Accept": GITHUB_ACCEPT,
        }

    def fetch_all(self, kind: CollectionKind) -> List[CanonicalItem]:
        """Return every normalized item of `kind`, or raise UpstreamFetchFailed."""
        items: List[CanonicalItem] = []
        seen: Set[str] = set()
        for page in self._iter_pages(kind):
            if kind is CollectionKind.COMMITS:
                normalized = (
                    normalize_commit(record)
                    for record in page
                    if self._keep_commit(record)
                )
            else:
                normalized = (normalize_pull(record) for record in page)
            # Page boundaries shift when upstream changes mid-sync; keep the first copy.
            for item in normalized:
                if item.id in seen:
                    continue
                seen.add(item.id)
                items.append(item)
        self.logger.debug("Fetched %d %s from %s", len(items), kind.value, self.config.repository)
        return items

    def collection_url(self, kind: CollectionKind) -> str:
        return f"{self.config.api_url.rstrip('/')}/repos/{self.config.repository}/{kind.value}"

    # ------------------------------------------------------------------
    # Helpers

    def _iter_pages(self, kind: CollectionKind) -> Iterator[List[Dict[str, Any]]]:
        url: Optional[str] = self.collection_url(kind)
        params: Optional[Dict[str, Any]] = {"per_page": self.config.per_page}
        if kind is CollectionKind.PULLS:
            params["state"] = "all"
        pages = 0

        while url:
            if pages >= self.config.max_pages:
                raise UpstreamFetchFailed(
                    None, f"pagination exceeded {self.config.max_pages} pages for {kind.value}"
                )
            response = self._get(url, params)
            pages += 1
            try:
                body = response.json()
            except ValueError as exc:
                raise UpstreamFetchFailed(response.status_code, "invalid JSON page") from exc
            if not isinstance(body, list):
                raise UpstreamFetchFailed(response.status_code, "expected a JSON list page")
            yield body

            # The next link already carries per_page/page query parameters.
            url = (response.links.get("next") or {}).get("url")
            params = None

    def _get(self, url: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        try:
            response = self.session.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamFetchFailed(None, str(exc)) from exc
        if not response.ok:
            raise UpstreamFetchFailed(response.status_code, _error_message(response))
        return response

    def _keep_commit(self, record: Dict[str, Any]) -> bool:
        commit = record.get("commit") or {}
        author = (commit.get("author") or {}).get("name")
        message = commit.get("message") or ""
        excluded_author = self.config.excluded_author
        if excluded_author and author == excluded_author:
            return False
        prefix = self.config.excluded_message_prefix
        if prefix and message.startswith(prefix):
            return False
        return True


def normalize_commit(record: Dict[str, Any]) -> CanonicalItem:
    commit = record.get("commit") or {}
    author = commit.get("author") or {}
    return CanonicalItem(
        id=str(record.get("sha", "")),
        message=commit.get("message") or "",
        author=author.get("name") or "",
        date=author.get("date") or "",
        link=record.get("html_url") or "",
    )


def normalize_pull(record: Dict[str, Any]) -> CanonicalItem:
    merged_at = record.get("merged_at")
    return CanonicalItem(
        id=str(record.get("number", "")),
        message=record.get("title") or "",
        description=record.get("body"),
        author=(record.get("user") or {}).get("login") or "",
        date=record.get("created_at") or "",
        link=record.get("html_url") or "",
        state=record.get("state") or "open",
        merged=merged_at is not None,
        merged_at=merged_at,
    )


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return response.reason or f"HTTP {response.status_code}"


__all__ = ["GITHUB_ACCEPT", "Paginator", "normalize_commit", "normalize_pull"]
