"""CLI entrypoints for commitboard commands."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import CommitboardConfig, ConfigError, load_config
from .errors import CommitboardError
from .logging import configure_logging
from .models import CollectionKind
from .orchestrator import SyncOrchestrator
from .ranking import RankingView
from .stores import JsonStore


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    # Subcommands repeat -v; SUPPRESS keeps them from clobbering the global flag.
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Log debug output, including tracebacks for sync failures.",
    )


def _add_kind_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in CollectionKind],
        default=CollectionKind.COMMITS.value,
        help="Upstream collection to operate on (default: commits).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commitboard",
        description="Mirror a GitHub repository's commits and serve an upvote leaderboard.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .commitboard.yml or its directory (defaults to current directory).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default=None, help="Interface to bind (overrides config).")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind (overrides config).")

    sync_parser = subparsers.add_parser(
        "sync",
        help="Fetch the upstream collection and replace the local snapshot.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_kind_option(sync_parser)
    sync_parser.add_argument(
        "--token",
        default=None,
        help="GitHub token (defaults to the GITHUB_TOKEN environment variable).",
    )

    board_parser = subparsers.add_parser("leaderboard", help="Print the ranked leaderboard.")
    _add_verbose_option(board_parser, suppress_default=True)
    _add_kind_option(board_parser)
    board_parser.add_argument("--search", default=None, help="Case-insensitive filter term.")
    board_parser.add_argument("--limit", type=int, default=20, help="Maximum rows to print.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for commitboard commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    verbose = bool(args.verbose) or config.logging.verbose
    config.logging.verbose = verbose

    if args.command == "serve":
        _serve(parser, config, host=args.host, port=args.port)
        return

    configure_logging(verbose=verbose)
    store = JsonStore(config.storage.data_dir, on_corrupt=config.storage.on_corrupt)
    kind = CollectionKind(args.kind)

    if args.command == "sync":
        token = args.token or os.getenv("GITHUB_TOKEN")
        orchestrator = SyncOrchestrator(store, github_config=config.github)
        try:
            count = orchestrator.sync_all(kind, token or "")
        except CommitboardError as exc:
            parser.exit(1, f"commitboard sync failed: {exc}\nRun with --verbose for more details.\n")
        print(f"Synced {count} {kind.value} from {config.github.repository}")
    elif args.command == "leaderboard":
        try:
            ranked = RankingView(store).list(kind, args.search)
        except CommitboardError as exc:
            parser.exit(1, f"commitboard leaderboard failed: {exc}\n")
        if not ranked:
            print(f"No {kind.value} found. Run `commitboard sync` first.")
            return
        for entry in ranked[: max(args.limit, 0)]:
            headline = entry.item.message.splitlines()[0] if entry.item.message else ""
            print(f"{entry.upvotes:>5}  {entry.item.id[:12]:<12}  {entry.item.author}  {headline}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _serve(
    parser: argparse.ArgumentParser,
    config: CommitboardConfig,
    *,
    host: str | None,
    port: int | None,
) -> None:  # pragma: no cover - integration path
    from .service import run_service

    try:
        config.require_oauth()
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    run_service(config)


if __name__ == "__main__":
    main(sys.argv[1:])
