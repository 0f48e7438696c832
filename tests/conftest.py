import pytest


class FakeClock:
    """Monotonic clock that only moves when told to (or when fake-sleeping)."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    """Fake clock whose `sleep` records waits and advances time instantly."""
    return FakeClock()
