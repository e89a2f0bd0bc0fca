"""Fake Time implementation for testing.

FakeTime returns a fixed instant, optionally advancing by a step on every call,
so ordering between createdAt and updatedAt can be asserted.
"""

from datetime import UTC, datetime, timedelta

from specstack.core.time.abc import Time

DEFAULT_FAKE_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeTime(Time):
    """In-memory fake clock.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(
        self,
        start: datetime = DEFAULT_FAKE_NOW,
        step: timedelta = timedelta(0),
    ) -> None:
        self._current = start
        self._step = step
        self._now_calls = 0

    @property
    def now_calls(self) -> int:
        """Number of times now() was called.

        This property is for test assertions only.
        """
        return self._now_calls

    def now(self) -> datetime:
        self._now_calls += 1
        value = self._current
        self._current = self._current + self._step
        return value
