from __future__ import annotations

import json
from pathlib import Path

import pytest

from commitboard import cli
from commitboard.errors import UpstreamFetchFailed
from commitboard.models import CollectionKind


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_TOKEN", "COMMITBOARD_DATA_DIR", "COMMITBOARD_LOG_DIR", "GITHUB_REPOSITORY"):
        monkeypatch.delenv(name, raising=False)


def test_sync_parser_defaults() -> None:
    args = cli._build_parser().parse_args(["sync"])

    assert args.command == "sync"
    assert args.kind == "commits"
    assert args.token is None
    assert args.verbose is False


def test_verbose_after_subcommand() -> None:
    args = cli._build_parser().parse_args(["leaderboard", "--verbose", "--kind", "pulls", "--search", "fix"])

    assert args.verbose is True
    assert args.kind == "pulls"
    assert args.search == "fix"
    assert args.limit == 20


def test_serve_parser_overrides() -> None:
    args = cli._build_parser().parse_args(["--config", "conf", "serve", "--port", "8080"])

    assert args.config == Path("conf")
    assert args.port == 8080
    assert args.host is None


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(SystemExit):
        cli._build_parser().parse_args(["sync", "--kind", "issues"])


def test_leaderboard_prints_ranked_rows(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    items = [
        {"id": "aaaaaaaaaaaaaaaa", "message": "fix typo\n\nbody", "author": "alice", "date": "d", "link": "l"},
        {"id": "bbbbbbbbbbbbbbbb", "message": "add feature", "author": "bob", "date": "d", "link": "l"},
    ]
    votes = [{"itemId": "bbbbbbbbbbbbbbbb", "voterId": "u1", "timestamp": "t"}]
    (tmp_path / "commits.json").write_text(json.dumps(items), encoding="utf-8")
    (tmp_path / "votes.json").write_text(json.dumps(votes), encoding="utf-8")

    cli.main(["--config", str(tmp_path), "leaderboard"])

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "    1  bbbbbbbbbbbb  bob  add feature",
        "    0  aaaaaaaaaaaa  alice  fix typo",
    ]


def test_leaderboard_reports_empty_store(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["--config", str(tmp_path), "leaderboard", "--kind", "pulls"])

    assert "No pulls found" in capsys.readouterr().out


def test_sync_without_token_exits_nonzero(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path), "sync"])

    assert excinfo.value.code == 1


def test_sync_reports_count(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls = []

    class StubOrchestrator:
        def __init__(self, store, *, github_config) -> None:
            self.github_config = github_config

        def sync_all(self, kind: CollectionKind, token: str) -> int:
            calls.append((kind, token))
            return 42

    monkeypatch.setattr(cli, "SyncOrchestrator", StubOrchestrator)
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")

    cli.main(["--config", str(tmp_path), "sync", "--kind", "pulls"])

    assert calls == [(CollectionKind.PULLS, "env-token")]
    assert capsys.readouterr().out.strip() == "Synced 42 pulls from DishpitDev/Slopify"


def test_sync_upstream_failure_exits_nonzero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    class FailingOrchestrator:
        def __init__(self, store, *, github_config) -> None:
            pass

        def sync_all(self, kind: CollectionKind, token: str) -> int:
            raise UpstreamFetchFailed(403, "rate limited")

    monkeypatch.setattr(cli, "SyncOrchestrator", FailingOrchestrator)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--config", str(tmp_path), "sync", "--token", "tok"])

    assert excinfo.value.code == 1
