# ------------------------------------------------------------
# Module: importer/core/logging.py
# Purpose: One-call logging setup for embedding applications and tests.
# ------------------------------------------------------------

"""Logging setup for the import core.

The library itself only creates named loggers (`ingest.*`, `storage.*`,
`inference.*`); an application calls `configure_logging` once to route them
to stdout at the configured level.

Notes
-----
- `MUTE_ALL_LOGS` disables every record below CRITICAL process-wide, which
  keeps large benchmark imports quiet.
- A root handler installed earlier by the host application is kept.
"""

import logging
import sys

from importer.core.config import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
AREAS = ("ingest", "storage", "inference", "importer")


def configure_logging(cfg: Settings | None = None) -> None:
    cfg = cfg or default_settings
    if cfg.MUTE_ALL_LOGS:
        logging.disable(logging.CRITICAL)
        return
    logging.disable(logging.NOTSET)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    for name in AREAS:
        logging.getLogger(name).setLevel(cfg.LOG_LEVEL)
