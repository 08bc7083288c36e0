# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Silent logger implementation for testing."""

from typing import Any

from .logger import Logger


class SilentLogger(Logger):
    """Logger that keeps entries in memory and prints nothing.

    Tests assert on event names (``config_created``, ``notification_failed``)
    through :meth:`has_log`. Entries are never filtered by level.
    """

    def __init__(self, level: str = "INFO", name: str | None = None):
        """Initialize the logger.

        Args:
            level: Recorded for parity with the other loggers, not used for filtering
            name: Logger name (default: "system-config")
        """
        self.level = level.upper()
        self.name = name or "system-config"
        self.logs: list[dict[str, Any]] = []

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        """Append one entry.

        Args:
            level: Log level name
            message: Event name
            **kwargs: Structured fields, kept under ``extra``
        """
        log_entry: dict[str, Any] = {
            "level": level,
            "message": message,
        }
        if kwargs:
            log_entry["extra"] = kwargs
        self.logs.append(log_entry)

    def info(self, message: str, **kwargs: Any) -> None:
        """Record an info-level event.

        Args:
            message: Event name
            **kwargs: Structured fields
        """
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Record a warning-level event.

        Args:
            message: Event name
            **kwargs: Structured fields
        """
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Record an error-level event.

        Args:
            message: Event name
            **kwargs: Structured fields
        """
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Record a debug-level event.

        Args:
            message: Event name
            **kwargs: Structured fields
        """
        self._log("DEBUG", message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Record an error-level event raised from an exception handler.

        Args:
            message: Event name
            **kwargs: Structured fields
        """
        self._log("ERROR", message, **kwargs)

    def clear_logs(self) -> None:
        """Forget every recorded entry."""
        self.logs.clear()

    def get_logs(self, level: str | None = None) -> list[dict[str, Any]]:
        """Return recorded entries, optionally for one level.

        Args:
            level: DEBUG, INFO, WARNING or ERROR; None returns everything

        Returns:
            Matching entries in recording order
        """
        if level is None:
            return self.logs
        return [log for log in self.logs if log["level"] == level]

    def has_log(self, message: str, level: str | None = None) -> bool:
        """Check whether an event was logged.

        Args:
            message: Text to look for (substring match on the event name)
            level: Optional level to restrict the search to

        Returns:
            True if a matching entry exists
        """
        logs_to_search = self.get_logs(level) if level else self.logs
        return any(message in log["message"] for log in logs_to_search)
