import pytest

from fakes import FakeClock, SleepRecorder


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(now=1000.0)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()
