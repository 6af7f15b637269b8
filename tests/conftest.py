import pytest
import random

from condensing_unit.data_model import DataModel, Addresses
from condensing_unit.compressor import CompressorSequencer
from condensing_unit.fan import FanStagingEngine
from condensing_unit.sensors import PlantSimulator


class MockRandom:
    """Deterministic random provider for tests."""
    def __init__(self, sequence=None):
        self.sequence = sequence or [0]
        self.index = 0

    def randint(self, a, b):
        """Mock random.randint with deterministic values"""
        if self.index >= len(self.sequence):
            self.index = 0  # Cycle through sequence
        value = self.sequence[self.index]
        self.index += 1
        return value


@pytest.fixture
def mock_random(monkeypatch):
    """Fixture to replace random.randint with deterministic values"""
    def _mock_random(sequence=None):
        mock = MockRandom(sequence)
        monkeypatch.setattr(random, "randint", mock.randint)
        return mock
    return _mock_random


@pytest.fixture
def data_model():
    """Fresh DataModel with short compressor timings (run 3, stop 5, safety 4 ticks)"""
    dm = DataModel()
    dm.write_holding(Addresses.HR_MIN_RUN_TIME, 3)
    dm.write_holding(Addresses.HR_MIN_STOP_TIME, 5)
    dm.write_holding(Addresses.HR_SAFETY_TIMER, 4)
    return dm


@pytest.fixture
def sequencer(data_model):
    """Create a CompressorSequencer with the fixture data_model"""
    return CompressorSequencer(data_model)


@pytest.fixture
def fan_engine(data_model):
    """Create a FanStagingEngine with the fixture data_model"""
    return FanStagingEngine(data_model)


@pytest.fixture
def plant(data_model):
    """Create a PlantSimulator with the fixture data_model"""
    return PlantSimulator(data_model)


@pytest.fixture
def controlled_system(data_model, sequencer, fan_engine, plant, mock_random):
    """Create a complete system with deterministic random"""
    mock_random()
    return {
        'data_model': data_model,
        'compressor': sequencer,
        'fans': fan_engine,
        'plant': plant,
    }
