#!/usr/bin/env python3
"""Logging setup shared by every p2pchat module."""

from __future__ import annotations
import logging                           # Python stdlib logging framework
import sys                               # For the stderr handle
from logging.handlers import RotatingFileHandler

__all__ = ["LOG", "LOG_FORMAT", "configure_logging"]

# Unified log line format.  Example: [23:59:59] INFO     Peer connected: 10.0.0.2:5000
LOG_FORMAT = logging.Formatter("[%(asctime)s] %(levelname)-8s %(message)s", "%H:%M:%S")

# Modules log through this one named logger:
#     from p2pchat.util import LOG
LOG = logging.getLogger("p2pchat")


def configure_logging(level: int = logging.INFO, log_file: str | None = "p2pchat.log") -> logging.Logger:
    """Attach console (+ optional rotating file) handlers to the "p2pchat" logger.

    Safe to call more than once: handlers from a previous call are replaced.
    Console output goes to *stderr*, stdout is reserved for chat messages.
    """

    LOG.setLevel(level)
    for handler in list(LOG.handlers):   # Re-configuration replaces, never stacks
        LOG.removeHandler(handler)
        handler.close()

    # ----- Console handler (stderr) -----
    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(LOG_FORMAT)
    LOG.addHandler(sh)

    # ----- Rotating file handler -----
    # Rotates once file hits ±1 MiB, keeps 3 backups ⇒ log ≲ 4 MiB on disk.
    if log_file:
        fh = RotatingFileHandler(
            log_file,
            maxBytes=1_048_576,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setFormatter(LOG_FORMAT)
        LOG.addHandler(fh)

    return LOG
