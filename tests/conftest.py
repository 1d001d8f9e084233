import pytest

from fringe_sync.core.models import FringeParameters, PatternTiming
from fringe_sync.core.timing import TimingConfig
from fringe_sync.patterns.generator import FringePatternGenerator
from fringe_sync.patterns.table import PatternTableBuilder


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def small_params():
    return FringeParameters(width=64, height=48, frequency=4, intensity=100, offset=128, steps=4)


@pytest.fixture
def small_table(small_params):
    images = FringePatternGenerator().generate(small_params)
    return PatternTableBuilder().build(images, PatternTiming(), 64, 48)


@pytest.fixture
def timing():
    return TimingConfig()
