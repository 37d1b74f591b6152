"""Process-level helpers: SSL environment and logging setup."""

from tradejournal.util.env import fix_ssl_env, make_ssl_context
from tradejournal.util.logging import setup_logging

__all__ = ["fix_ssl_env", "make_ssl_context", "setup_logging"]
