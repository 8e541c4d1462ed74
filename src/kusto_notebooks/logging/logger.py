import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

_INITIALIZED = False

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_ROOT = "kusto"


def init_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/kusto-notebooks.log",
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 3,
) -> None:
    """Configure the package loggers once per process.

    Everything goes to stderr; when ``log_file`` is set, records are also written
    to a size-rotated file next to it (``kusto-notebooks.log.1`` and so on).
    """
    global _INITIALIZED
    if _INITIALIZED:
        return

    level = getattr(logging, log_level.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
                delay=True,
            )
        )

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    formatter = logging.Formatter(_FORMAT)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    _INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``kusto`` hierarchy, e.g. ``kusto.kernel.execution``."""
    return logging.getLogger(f"{_ROOT}.{name}")
