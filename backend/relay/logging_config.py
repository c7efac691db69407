"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger."""

    root = logging.getLogger()
    if not any(getattr(handler, "_relay_handler", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._relay_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())
    # discord.py is chatty at DEBUG; keep gateway noise at INFO.
    logging.getLogger("discord").setLevel(max(root.level, logging.INFO))
