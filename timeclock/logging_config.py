"""
Logging setup for the server and the one-off scripts.

Everything goes to stdout and to a size-rotated file under logs/. Every
line passes through SensitiveDataFormatter first, so Ragic keys, admin
JWTs, the webhook secret and LINE ids never reach either sink in clear.
"""

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Tuple

LOG_FILENAME = "timeclock.log"
MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are only interesting when something breaks
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.access", "uvicorn.error")

_SECRET_KEYS = (
    "password", "secret", "token", "access_token", "api_key", "apikey", "authorization",
    "webhook_secret", "channel_access_token", "jwt_secret_key",
)
_SECRET_QUERY_PARAMS = ("token", "key", "secret", "api_key", "apikey", "APIKey")


def _masks() -> List[Tuple["re.Pattern[str]", str]]:
    secret_keys = "|".join(_SECRET_KEYS)
    query_params = "|".join(_SECRET_QUERY_PARAMS)
    return [
        (re.compile(rf"({secret_keys})\s*[:=]\s*['\"]?([^'\"\s&]+)['\"]?", re.IGNORECASE), r"\1=***"),
        # Ragic takes the API key as a Basic credential
        (re.compile(r"(Basic\s+)([A-Za-z0-9+/=]{8,})", re.IGNORECASE), r"\1***"),
        (re.compile(r"(Bearer\s+)([A-Za-z0-9\-_\.]+)", re.IGNORECASE), r"\1***"),
        (re.compile(r"\b(eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+)\b"), r"[JWT:***]"),
        (re.compile(rf"([?&])({query_params})=([^&\s]+)", re.IGNORECASE), r"\1\2=***"),
        # LINE user ids keep a prefix so admins can still correlate pushes
        (re.compile(r"\b(U[a-f0-9]{8})([a-f0-9]{24})\b"), r"\1***"),
    ]


SENSITIVE_PATTERNS = _masks()


class SensitiveDataFormatter(logging.Formatter):
    """Formatter that masks credentials in the rendered line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        for pattern, replacement in SENSITIVE_PATTERNS:
            line = pattern.sub(replacement, line)
        return line


def get_log_path(log_dir: Path | None = None) -> Path:
    """Rotating log file path, creating its directory. Defaults to <project>/logs."""
    directory = log_dir or Path(__file__).resolve().parent.parent / "logs"
    directory.mkdir(parents=True, exist_ok=True)
    return directory / LOG_FILENAME


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _handlers(log_file: Path, level: int) -> List[logging.Handler]:
    formatter = SensitiveDataFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = [
        RotatingFileHandler(str(log_file), maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"),
        logging.StreamHandler(sys.stdout),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(log_level: int | str = logging.INFO, log_dir: Path | None = None) -> None:
    """
    Replace the root handlers with the masked file and console pair.

    Args:
        log_level: Level name or number; unknown names fall back to INFO.
        log_dir: Directory for the rotating file (default: <project>/logs).
    """
    level = _resolve_level(log_level)
    log_file = get_log_path(log_dir)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in _handlers(log_file, level):
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging initialized. Log file: {log_file}")
