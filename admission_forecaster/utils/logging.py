"""
Logging setup for the admission forecaster.

``configure_logging(config)`` is called once by the CLI before any store is
opened. Library modules only ever do ``logging.getLogger(__name__)``.

Console output goes to stderr; recommendation tables and ``--json`` dumps on
stdout stay clean for piping.

With ``json_format = true`` under ``[logging]`` every line is one object::

    {"ts": "2026-03-02T09:00:00Z", "level": "INFO", "logger": "...", "msg": "...", "track": "susi"}

Korean university and department names are written as-is (no ``\\u`` escapes).
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

if TYPE_CHECKING:
    from admission_forecaster.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_RESERVED = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": created.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(
            (k, v) for k, v in vars(record).items()
            if k not in _RESERVED and not k.startswith("_")
        )
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    formatter.converter = time.gmtime
    return formatter


def configure_logging(config: "LoggingConfig") -> None:
    """Install stderr (and optional file) handlers on the root logger.

    Args:
        config: ``AppConfig.logging``. An empty ``log_file`` disables the
            file handler.
    """
    level = logging.getLevelName(config.level.upper())
    formatter = build_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)


@contextmanager
def log_duration(
    logger: logging.Logger,
    action: str,
    level: int = logging.DEBUG,
    **fields: Any,
) -> Iterator[None]:
    """Log how long the enclosed block took, with ``fields`` as ``extra``.

    Nothing is logged if the block raises; the exception propagates.
    """
    start = time.perf_counter()
    yield
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.log(
        level, "%s took %.1f ms.", action, elapsed_ms,
        extra={**fields, "elapsed_ms": round(elapsed_ms, 1)},
    )
