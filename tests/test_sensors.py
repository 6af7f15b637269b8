import pytest
import random

from condensing_unit.data_model import DataModel, Addresses
from condensing_unit.sensors import PlantSimulator, saturation_temp


def test_simulation_disabled():
    dm = DataModel()
    sensors = PlantSimulator(dm)

    # Disable simulation
    dm.write_holding(Addresses.HR_SIM_ENABLE, 0)

    # Set initial values
    dm.set_head_pressure(200.0)
    dm.set_oat(60.0)
    dm.set_saturated_temp(90.0)

    # Update shouldn't change values when simulation is disabled
    sensors.update()

    assert dm.get_head_pressure() == 200.0
    assert dm.get_oat() == 60.0
    assert dm.get_saturated_temp() == 90.0


def test_compressor_off_bleeds_pressure(mock_random):
    mock_random([0, 0])  # For oat, head pressure
    dm = DataModel()
    sensors = PlantSimulator(dm)

    sensors.update()

    assert dm.get_oat() == 75.0
    assert dm.get_head_pressure() == 216.0  # 220 - 4
    assert dm.get_saturated_temp() == 94.0  # 216 / 4 + 40


def test_compressor_on_builds_pressure(mock_random):
    mock_random([0, 0])
    dm = DataModel()
    sensors = PlantSimulator(dm)
    dm.set_compressor(True, 2)

    sensors.update()

    assert dm.get_head_pressure() == 232.0  # 220 + 12


def test_fan_groups_pull_pressure_down(mock_random):
    mock_random([0, 0])
    dm = DataModel()
    sensors = PlantSimulator(dm)
    dm.set_compressor(True, 2)
    dm.set_fan_groups([True, True, True, False])

    sensors.update()

    assert dm.get_head_pressure() == 217.0  # 220 + 12 - 3 * 5


def test_jitter_applied(mock_random):
    mock_random([15, -5])  # +1.5 °F, -0.5 psi
    dm = DataModel()
    sensors = PlantSimulator(dm)

    sensors.update()

    assert dm.get_oat() == 76.5
    assert dm.get_head_pressure() == pytest.approx(215.5)


def test_pressure_bounds(monkeypatch):
    # Test head pressure stays within bounds

    # First test the lower bound
    monkeypatch.setattr(random, "randint", lambda a, b: -100)  # Large negative

    dm = DataModel()
    sensors = PlantSimulator(dm)
    dm.set_head_pressure(62.0)
    dm.set_fan_groups([True] * 4)

    sensors.update()

    assert dm.get_head_pressure() == 60.0

    # Then test the upper bound
    monkeypatch.setattr(random, "randint", lambda a, b: 100)  # Large positive

    dm.set_head_pressure(448.0)
    dm.set_fan_groups([False] * 4)
    dm.set_compressor(True, 2)

    sensors.update()

    assert dm.get_head_pressure() == 450.0


def test_saturation_fit():
    assert saturation_temp(220.0) == 95.0
    assert saturation_temp(300.0) == 115.0
