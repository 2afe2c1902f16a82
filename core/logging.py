"""
core/logging.py -- One place that decides the log format.

Every module logs through a named stdlib logger under the "accounts" namespace
(accounts.store, accounts.service, accounts.mail, accounts.api). Entry points
call configure_logging() once; library code never calls basicConfig itself.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(debug: bool = False) -> None:
    """Install the root handler. Safe to call more than once (basicConfig is a no-op after the first)."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    # SQLAlchemy echoes every statement at INFO when its logger is enabled.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
