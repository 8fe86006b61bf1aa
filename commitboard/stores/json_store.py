"""Flat-file JSON document store keyed by document name."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from ..errors import PersistenceFailure
from ..logging import get_logger

T = TypeVar("T")

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
CORRUPT_POLICIES = ("reseed", "raise")


class JsonStore:
    """Reads and writes named JSON documents under a data directory.

    Each key maps to ``<root>/<key>.json``. Reading a key that has never been
    written seeds it with the caller's default. A document that exists but
    cannot be decoded (or is rejected by the caller's parser) is treated
    according to ``on_corrupt``: ``reseed`` keeps a copy of the bad file and
    replaces it with the default, ``raise`` surfaces a PersistenceFailure.
    """

    def __init__(
        self,
        root: Path,
        *,
        on_corrupt: str = "reseed",
        logger: logging.Logger | None = None,
    ) -> None:
        if on_corrupt not in CORRUPT_POLICIES:
            raise ValueError(f"on_corrupt must be one of {CORRUPT_POLICIES}, got '{on_corrupt}'")
        self.root = Path(root)
        self.on_corrupt = on_corrupt
        self.logger = logger or get_logger("store")
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid document key '{key}'")
        return self.root / f"{key}.json"

    def read(
        self,
        key: str,
        default: Any,
        *,
        parser: Optional[Callable[[Any], T]] = None,
    ) -> Any:
        path = self.path_for(key)
        with self.transaction(key):
            try:
                raw = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                self.logger.warning("Document %s not found, creating new", path.name)
                self.write(key, default)
                return parser(default) if parser else default
            except OSError as exc:
                raise PersistenceFailure(f"Failed to read {path.name}: {exc}") from exc

            try:
                document = json.loads(raw)
                return parser(document) if parser else document
            except ValueError as exc:
                return self._recover_malformed(key, path, default, parser, exc)

    def write(self, key: str, value: Any) -> None:
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2)
        except (TypeError, ValueError) as exc:
            raise PersistenceFailure(f"Document {key} is not JSON serializable: {exc}") from exc

        with self.transaction(key):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=path.parent)
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(payload)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                self.logger.error("Failed to write to %s", path.name, extra={"meta": {"error": str(exc)}})
                raise PersistenceFailure(f"Failed to write {path.name}: {exc}") from exc
        self.logger.debug("Successfully wrote to %s", path.name)

    @contextmanager
    def transaction(self, key: str) -> Iterator[None]:
        """Hold the per-key lock for a read-modify-write sequence."""
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Internal helpers

    def _recover_malformed(
        self,
        key: str,
        path: Path,
        default: Any,
        parser: Optional[Callable[[Any], T]],
        exc: ValueError,
    ) -> Any:
        if self.on_corrupt == "raise":
            self.logger.error("Document %s is malformed", path.name, extra={"meta": {"error": str(exc)}})
            raise PersistenceFailure(f"Document {path.name} is malformed: {exc}") from exc

        backup = path.with_name(f"{path.name}.corrupt-{int(time.time() * 1000)}")
        try:
            os.replace(path, backup)
        except OSError as move_exc:
            raise PersistenceFailure(f"Failed to set aside malformed {path.name}: {move_exc}") from move_exc
        self.logger.error(
            "Document %s is malformed; saved copy as %s and re-seeded with default",
            path.name,
            backup.name,
            extra={"meta": {"error": str(exc)}},
        )
        self.write(key, default)
        return parser(default) if parser else default


__all__ = ["CORRUPT_POLICIES", "JsonStore"]
