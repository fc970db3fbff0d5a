import logging
import sys
from typing import Optional

_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(level: str = "INFO") -> None:
    """
    Plain stdout logging, one line per record.
    """
    numeric_level: Optional[int] = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    )

    # Clear existing handlers to avoid duplicate logs in reloads
    root.handlers.clear()
    root.addHandler(handler)

    # request lines from the model clients would otherwise echo every call
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
