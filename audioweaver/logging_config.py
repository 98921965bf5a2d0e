"""Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; the application calls
``configure_logging`` once during startup.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stderr handler to the root logger.

    Safe to call more than once; only the level is updated after the first call.
    """
    global _configured

    root = logging.getLogger()
    root.setLevel(level.upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
