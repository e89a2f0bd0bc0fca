"""Time operations abstraction for testing.

This module provides an ABC for clock access so that entry timestamps are
deterministic in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time as a timezone-aware datetime in UTC."""
        ...

    def now_iso(self) -> str:
        """Get the current time formatted as ISO 8601."""
        return self.now().isoformat()
