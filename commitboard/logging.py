"""Logging utilities for the commitboard service and commands."""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import List, Optional

_LOGGER_NAME = "commitboard"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the commitboard hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class JsonlLogSink(logging.Handler):
    """Buffers records as JSON lines and writes them out on demand.

    Structured context travels in ``extra={"meta": {...}}`` and is merged
    into the emitted object.
    """

    def __init__(self, log_dir: Path, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.log_dir = Path(log_dir)
        self._buffer: List[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z"),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            meta = getattr(record, "meta", None)
            if isinstance(meta, dict):
                for key, value in meta.items():
                    entry.setdefault(str(key), value)
            self._buffer.append(json.dumps(entry, default=str) + "\n")
        except Exception:
            self.handleError(record)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def flush_to_disk(self) -> Optional[Path]:
        """Write buffered lines to ``log_<epoch_ms>.jsonl`` and return its path."""
        with self.lock:
            if not self._buffer:
                return None
            lines, self._buffer = self._buffer, []
        self.log_dir.mkdir(parents=True, exist_ok=True)
        target = self.log_dir / f"log_{int(time.time() * 1000)}.jsonl"
        try:
            target.write_text("".join(lines), encoding="utf-8")
        except OSError:
            with self.lock:
                self._buffer[:0] = lines
            raise
        return target

    def flush(self) -> None:
        try:
            self.flush_to_disk()
        except OSError:
            # logging.shutdown() calls flush; a failing disk must not raise there
            pass


class PeriodicFlusher:
    """Flushes a JsonlLogSink on a fixed interval from a daemon thread."""

    def __init__(
        self,
        sink: JsonlLogSink,
        interval: float,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.sink = sink
        self.interval = interval
        self.logger = logger or get_logger("logsink")
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="commitboard-log-flusher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1)
            self._thread = None
        self.flush()

    def flush(self) -> Optional[Path]:
        try:
            path = self.sink.flush_to_disk()
        except OSError as exc:
            self.logger.error("Error saving logs: %s", exc)
            return None
        if path is not None:
            self.logger.info("Logs saved to %s", path)
        return path

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.flush()


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    sink: JsonlLogSink | None = None,
) -> logging.Logger:
    """Configure the commitboard logger with console output and optional sinks."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # `serve` and every CLI command share this logger; a sink left from an
    # earlier call would otherwise keep buffering alongside the new one.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[commitboard] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    if sink is not None:
        sink.setLevel(level)
        logger.addHandler(sink)

    return logger


__all__ = ["JsonlLogSink", "PeriodicFlusher", "configure_logging", "get_logger"]
