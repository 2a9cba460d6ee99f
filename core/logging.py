"""Logging setup shared by the server entry point and tests"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def resolve_level(level: str | int | None) -> int:
    """Turn a level name, number or None into a logging level (default INFO)"""
    raw = level if level is not None else os.getenv("LOG_LEVEL")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        name = raw.strip().upper()
        if name.isdigit():
            return int(name)
        if name == "WARN":
            name = "WARNING"
        resolved = logging.getLevelName(name)
        if isinstance(resolved, int):
            return resolved
    return logging.INFO


def setup_logging(level: str | int | None = None) -> None:
    """Initialize the root logger once with a stdout handler.

    Level precedence: explicit `level` argument, then the LOG_LEVEL env var,
    then INFO.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        logging.captureWarnings(True)
    root.setLevel(resolve_level(level))
