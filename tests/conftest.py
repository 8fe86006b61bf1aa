from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterator

import pytest

from commitboard.stores import JsonStore


@pytest.fixture(autouse=True)
def _restore_commitboard_logger() -> Iterator[None]:
    """configure_logging() replaces handlers; undo it so later tests keep pytest's capture."""
    logger = logging.getLogger("commitboard")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def store(tmp_path: Path) -> JsonStore:
    """Provide a JSON store rooted at the pytest tmp_path."""
    return JsonStore(tmp_path / "data")


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2025, 3, 1, 9, 30, tzinfo=UTC)
