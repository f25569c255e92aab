"""Structured event logging and span timing for sessions and the client."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
