from __future__ import annotations

from typing import List

import pytest

from commitboard.errors import MissingCredentials, UpstreamFetchFailed
from commitboard.github import Paginator
from commitboard.models import CanonicalItem, CollectionKind
from commitboard.orchestrator import SyncOrchestrator
from commitboard.stores import JsonStore
from tests._fixtures.github import FakeResponse, FakeSession, commit_record


class StubPaginator:
    def __init__(self, items: List[CanonicalItem] | None = None, error: Exception | None = None) -> None:
        self.items = items or []
        self.error = error
        self.kinds: List[CollectionKind] = []

    def fetch_all(self, kind: CollectionKind) -> List[CanonicalItem]:
        self.kinds.append(kind)
        if self.error is not None:
            raise self.error
        return list(self.items)


def _item(item_id: str) -> CanonicalItem:
    return CanonicalItem(
        id=item_id,
        message=f"commit {item_id}",
        author="alice",
        date="2025-01-01T00:00:00Z",
        link=f"https://example.test/{item_id}",
    )


def test_sync_replaces_snapshot_and_returns_count(store: JsonStore) -> None:
    store.write("commits", [_item("old").to_dict()])
    paginator = StubPaginator([_item("a"), _item("b")])
    tokens: List[str] = []

    def factory(token: str) -> StubPaginator:
        tokens.append(token)
        return paginator

    count = SyncOrchestrator(store, factory).sync_all(CollectionKind.COMMITS, "tok")

    assert count == 2
    assert tokens == ["tok"]
    assert paginator.kinds == [CollectionKind.COMMITS]
    assert [entry["id"] for entry in store.read("commits", [])] == ["a", "b"]


def test_failed_fetch_leaves_previous_snapshot(store: JsonStore) -> None:
    previous = [_item("keep").to_dict()]
    store.write("commits", previous)
    paginator = StubPaginator(error=UpstreamFetchFailed(401, "Bad credentials"))

    with pytest.raises(UpstreamFetchFailed):
        SyncOrchestrator(store, lambda _: paginator).sync_all(CollectionKind.COMMITS, "bad")

    assert store.read("commits", []) == previous


def test_missing_token_is_rejected_before_fetching(store: JsonStore) -> None:
    called: List[str] = []

    def factory(token: str) -> StubPaginator:
        called.append(token)
        return StubPaginator()

    with pytest.raises(MissingCredentials):
        SyncOrchestrator(store, factory).sync_all(CollectionKind.COMMITS, "")

    assert called == []
    assert not store.path_for("commits").exists()


def test_pull_sync_writes_pulls_document(store: JsonStore) -> None:
    pull = CanonicalItem(
        id="12",
        message="Add button",
        author="bob",
        date="2025-02-01T00:00:00Z",
        link="https://example.test/pull/12",
        state="open",
        merged=False,
    )

    outcome = SyncOrchestrator(store, lambda _: StubPaginator([pull])).run_sync(CollectionKind.PULLS, "tok")

    assert outcome.kind is CollectionKind.PULLS
    assert outcome.count == 1
    assert store.read("pulls", [])[0]["state"] == "open"
    assert not store.path_for("commits").exists()


def test_sync_count_excludes_ids_repeated_across_pages(store: JsonStore) -> None:
    session = FakeSession(
        [
            FakeResponse(
                [commit_record("a", "one"), commit_record("b", "two")],
                next_url="https://api.github.com/repos/DishpitDev/Slopify/commits?page=2",
            ),
            FakeResponse([commit_record("b", "two"), commit_record("c", "three")]),
        ]
    )

    count = SyncOrchestrator(store, lambda token: Paginator(token, session=session)).sync_all(
        CollectionKind.COMMITS, "tok"
    )

    assert count == 3
    assert [entry["id"] for entry in store.read("commits", [])] == ["a", "b", "c"]
