"""
Logging bootstrap. Textual owns the terminal, so records go to a rotating
file only.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_configured: Optional[str] = None


def _default_log_path() -> str:
    log_dir = Path(os.path.expanduser("~/.local/share/query-drafter/logs"))
    return str(log_dir / "query-drafter.log")


def configure(level: str = "INFO", file_path: Optional[str] = None) -> str:
    """
    Attach the file handler to the root logger and return the log path.

    Repeated calls are no-ops and return the first path.
    """
    global _configured
    if _configured is not None:
        return _configured

    numeric = getattr(logging, str(level or "INFO").strip().upper(), logging.INFO)
    file_path = file_path or _default_log_path()
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(file_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))

    root = logging.getLogger()
    root.setLevel(numeric)
    root.addHandler(handler)

    # third-party HTTP clients are chatty at INFO
    for noisy in ("httpx", "openai", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = file_path
    return file_path
