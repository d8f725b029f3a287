"""Root logging setup for the note agent.

:func:`configure_logging` is the usual entry point: it maps
``Settings.debug_logging`` and ``Settings.log_dir`` onto :func:`setup_logging`
and leaves the handlers alone when neither changed.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..services.settings import Settings

__all__ = ["LOG_FILE_NAME", "setup_logging", "configure_logging", "resolve_log_path"]

LOGGER = logging.getLogger(__name__)

LOG_FILE_NAME = "noteagent.log"
_DEFAULT_LOG_DIR = Path.home() / ".noteagent" / "logs"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# Held at WARNING or above.
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

_active: tuple[Path, int] | None = None


def resolve_log_path(log_dir: Path | str | None = None) -> Path:
    """Return the log file inside ``log_dir`` (default ``~/.noteagent/logs``)."""

    return Path(log_dir or _DEFAULT_LOG_DIR).expanduser() / LOG_FILE_NAME


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating file handler and, optionally, a console handler on the root logger.

    Without ``force`` a second call keeps the handlers from the first one.
    """

    global _active
    if _active is not None and not force:
        return _active[0]

    log_path = resolve_log_path(log_dir)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handlers: list[logging.Handler] = [file_handler]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    quiet_level = max(level, logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _active = (log_path, level)
    return log_path


def configure_logging(settings: "Settings", *, console: bool = True) -> Path:
    """Apply the logging fields of ``settings``, reconfiguring only on change."""

    level = logging.DEBUG if settings.debug_logging else logging.INFO
    log_dir = settings.log_dir or None
    log_path = resolve_log_path(log_dir)
    if _active == (log_path, level):
        return log_path
    setup_logging(level, log_dir=log_dir, console=console, force=True)
    LOGGER.debug("Logging level set to %s (%s)", logging.getLevelName(level), log_path)
    return log_path
