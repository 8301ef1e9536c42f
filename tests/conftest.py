import pytest

from fitrep.config import Settings
from fitrep.scheduler import TimerScheduler
from helpers import FakeClock


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return TimerScheduler(clock=clock)
