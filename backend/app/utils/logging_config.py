import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once; LOG_LEVEL overrides the default INFO."""
    global _configured
    if _configured:
        return
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    _configured = True
