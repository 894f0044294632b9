"""Structured logging: JSON formatter and setup."""

from teal_shared.logging.formatter import JSONLogFormatter
from teal_shared.logging.setup import configure_logging

__all__ = ["JSONLogFormatter", "configure_logging"]
