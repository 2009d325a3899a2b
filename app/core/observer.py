"""
Event observer injected into the request pipeline and the auth flow.

The core never keeps counters of its own; it reports significant events to
whichever observer it was given. LoggingObserver is the production default.
"""

import logging

logger = logging.getLogger(__name__)


class Observer:
    """No-op observer. Subclass and override the hooks you care about."""

    def request_completed(self, method: str, path: str, status_code: int, duration_ms: float) -> None:
        pass

    def error_raised(self, error_type: str, status_code: int, path: str) -> None:
        pass

    def event(self, name: str, **fields) -> None:
        pass


class LoggingObserver(Observer):
    """Writes every event through the standard logging module."""

    def request_completed(self, method: str, path: str, status_code: int, duration_ms: float) -> None:
        logger.info("%s %s -> %d (%.1f ms)", method, path, status_code, duration_ms)

    def error_raised(self, error_type: str, status_code: int, path: str) -> None:
        if status_code >= 500:
            logger.error("[ERROR] %s on %s -> %d", error_type, path, status_code)
        else:
            logger.warning("[ERROR] %s on %s -> %d", error_type, path, status_code)

    def event(self, name: str, **fields) -> None:
        details = " | ".join(f"{key}={value}" for key, value in fields.items())
        logger.info("[EVENT] %s%s", name, f" | {details}" if details else "")
