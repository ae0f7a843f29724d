from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest


class StepClock:
    """Deterministic clock: every call advances by ``step``."""

    def __init__(self, start: datetime, step: timedelta) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        self.now = self.now + self.step
        return self.now


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2026, 1, 1, tzinfo=UTC), timedelta(seconds=1))
