"""Data model: process image of the condensing unit and helpers to read/write it.

We centralize the register/coil indexes so other modules import from here.
Addressing is zero-based, same as pyModbusTCP. The DataBank is only used as an
in-memory signal store; nothing here opens a socket.

Analog values are stored as scaled integers. Temperatures can go negative, so
they are written as 16-bit two's complement and decoded with ``get_2comp``.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar

from pyModbusTCP.server import DataBank
from pyModbusTCP.utils import get_2comp

FAN_GROUPS = 4

PRESSURE_SCALE = 10  # 0.1 psi
TEMPERATURE_SCALE = 10  # 0.1 °F
DEMAND_SCALE = 100  # 0.01 group


def _signed_word(value: float) -> int:
    # Saturate instead of wrapping through two's complement
    return max(-0x8000, min(0x7FFF, round(value)))


@dataclass(frozen=True)
class Addresses:
    # Coils (digital inputs from the plant / operator)
    COIL_ENABLE: ClassVar[int] = 0
    COIL_LPS: ClassVar[int] = 1          # True = low pressure switch open
    COIL_HPS: ClassVar[int] = 2          # True = high pressure switch open
    COIL_ALARM: ClassVar[int] = 3
    COIL_MANUAL_MODE: ClassVar[int] = 4
    COIL_PUMPDOWN: ClassVar[int] = 5

    # Input Registers (measurements and computed values)
    IR_HEAD_PRESSURE: ClassVar[int] = 0  # scaled 0.1 psi
    IR_OAT: ClassVar[int] = 1            # scaled 0.1 °F, signed
    IR_SAT_TEMP: ClassVar[int] = 2       # scaled 0.1 °F, signed
    IR_FAN_DEMAND: ClassVar[int] = 3     # scaled 0.01, 0..400
    IR_COMPRESSOR_STATE: ClassVar[int] = 4

    # Holding Registers (configuration)
    HR_MIN_RUN_TIME: ClassVar[int] = 0   # ticks
    HR_MIN_STOP_TIME: ClassVar[int] = 1
    HR_SAFETY_TIMER: ClassVar[int] = 2
    HR_MAX_RUNTIME: ClassVar[int] = 3    # 0 = no limit
    HR_MIN_OFF_TIME: ClassVar[int] = 4
    HR_MIN_COND_PRESSURE: ClassVar[int] = 5  # scaled 0.1 psi
    HR_MAX_COND_PRESSURE: ClassVar[int] = 6  # scaled 0.1 psi
    HR_SENSOR_BAND: ClassVar[int] = 7        # scaled 0.1
    HR_SIM_ENABLE: ClassVar[int] = 8

    # Discrete Inputs (read-only status / outputs)
    DI_COMPRESSOR_ON: ClassVar[int] = 0
    DI_FAN_GROUP_BASE: ClassVar[int] = 1  # groups 1..4 at 1..4
    DI_OAT_FAILED: ClassVar[int] = 5


class DataModel:
    """Owns initialization and provides semantic getters/setters.

    This keeps the control blocks from directly poking DataBank with magic
    numbers.

    Accepts an optional existing `DataBank` so several views can share the same
    backing data. If none is supplied a fresh DataBank is created.
    """

    def __init__(self, data_bank: DataBank | None = None):
        self._db = data_bank or DataBank()
        self._init_banks()
        self._init_defaults()

    # --- initialization -------------------------------------------------
    def _init_banks(self):
        # Pre-size with a buffer for future growth
        self._db.set_input_registers(0, [0] * 32)
        self._db.set_holding_registers(0, [0] * 32)
        self._db.set_coils(0, [False] * 16)
        self._db.set_discrete_inputs(0, [False] * 16)

    def _init_defaults(self):
        self.write_holding(Addresses.HR_MIN_RUN_TIME, 180)
        self.write_holding(Addresses.HR_MIN_STOP_TIME, 300)
        self.write_holding(Addresses.HR_SAFETY_TIMER, 600)
        self.write_holding(Addresses.HR_MAX_RUNTIME, 0)
        self.write_holding(Addresses.HR_MIN_OFF_TIME, 0)
        self.write_holding(Addresses.HR_MIN_COND_PRESSURE, 1500)  # 150.0 psi
        self.write_holding(Addresses.HR_MAX_COND_PRESSURE, 3500)  # 350.0 psi
        self.write_holding(Addresses.HR_SENSOR_BAND, 5)           # 0.5
        self.write_holding(Addresses.HR_SIM_ENABLE, 1)
        self.write_coil(Addresses.COIL_ENABLE, True)
        # Plausible start-up readings so the first filtered value is sane
        self.set_head_pressure(220.0)
        self.set_oat(75.0)
        self.set_saturated_temp(95.0)

    # --- generic helpers ------------------------------------------------
    def read_input(self, addr: int) -> int:
        vals = self._db.get_input_registers(addr, 1)
        if not vals:
            raise IndexError(f"Input register address out of range: {addr}")
        return vals[0]

    def write_input(self, addr: int, value: int):
        self._db.set_input_registers(addr, [value & 0xFFFF])

    def read_holding(self, addr: int) -> int:
        vals = self._db.get_holding_registers(addr, 1)
        if not vals:
            raise IndexError(f"Holding register address out of range: {addr}")
        return vals[0]

    def write_holding(self, addr: int, value: int):
        self._db.set_holding_registers(addr, [value & 0xFFFF])

    def read_coil(self, addr: int) -> bool:
        vals = self._db.get_coils(addr, 1)
        if not vals:
            raise IndexError(f"Coil address out of range: {addr}")
        return vals[0]

    def write_coil(self, addr: int, value: bool):
        self._db.set_coils(addr, [value])

    def read_di(self, addr: int) -> bool:
        vals = self._db.get_discrete_inputs(addr, 1)
        if not vals:
            raise IndexError(f"Discrete input address out of range: {addr}")
        return vals[0]

    def write_di(self, addr: int, value: bool):
        self._db.set_discrete_inputs(addr, [value])

    def read_signed(self, addr: int) -> int:
        return get_2comp(self.read_input(addr), 16)

    # --- digital inputs -------------------------------------------------
    def enable(self) -> bool:
        return self.read_coil(Addresses.COIL_ENABLE)

    def lps_tripped(self) -> bool:
        return self.read_coil(Addresses.COIL_LPS)

    def hps_tripped(self) -> bool:
        return self.read_coil(Addresses.COIL_HPS)

    def alarm(self) -> bool:
        return self.read_coil(Addresses.COIL_ALARM)

    def manual_mode(self) -> bool:
        return self.read_coil(Addresses.COIL_MANUAL_MODE)

    def pumpdown_requested(self) -> bool:
        return self.read_coil(Addresses.COIL_PUMPDOWN)

    # --- analog inputs (engineering units) -------------------------------
    def get_head_pressure(self) -> float:
        return self.read_input(Addresses.IR_HEAD_PRESSURE) / PRESSURE_SCALE

    def set_head_pressure(self, psi: float):
        self.write_input(Addresses.IR_HEAD_PRESSURE, round(max(0.0, psi) * PRESSURE_SCALE))

    def get_oat(self) -> float:
        return self.read_signed(Addresses.IR_OAT) / TEMPERATURE_SCALE

    def set_oat(self, deg_f: float):
        self.write_input(Addresses.IR_OAT, _signed_word(deg_f * TEMPERATURE_SCALE))

    def get_saturated_temp(self) -> float:
        return self.read_signed(Addresses.IR_SAT_TEMP) / TEMPERATURE_SCALE

    def set_saturated_temp(self, deg_f: float):
        self.write_input(Addresses.IR_SAT_TEMP, _signed_word(deg_f * TEMPERATURE_SCALE))

    # --- configuration ---------------------------------------------------
    def get_sim_enabled(self) -> bool:
        return self.read_holding(Addresses.HR_SIM_ENABLE) == 1

    def get_min_run_time(self) -> int:
        return self.read_holding(Addresses.HR_MIN_RUN_TIME)

    def get_min_stop_time(self) -> int:
        return self.read_holding(Addresses.HR_MIN_STOP_TIME)

    def get_safety_timer(self) -> int:
        return self.read_holding(Addresses.HR_SAFETY_TIMER)

    def get_max_runtime(self) -> int:
        return self.read_holding(Addresses.HR_MAX_RUNTIME)

    def get_min_off_time(self) -> int:
        return self.read_holding(Addresses.HR_MIN_OFF_TIME)

    def get_min_cond_pressure(self) -> float:
        return self.read_holding(Addresses.HR_MIN_COND_PRESSURE) / PRESSURE_SCALE

    def get_max_cond_pressure(self) -> float:
        return self.read_holding(Addresses.HR_MAX_COND_PRESSURE) / PRESSURE_SCALE

    def get_sensor_band(self) -> float:
        return self.read_holding(Addresses.HR_SENSOR_BAND) / PRESSURE_SCALE

    # --- outputs ----------------------------------------------------------
    def set_compressor(self, on: bool, state_code: int):
        self.write_di(Addresses.DI_COMPRESSOR_ON, on)
        self.write_input(Addresses.IR_COMPRESSOR_STATE, state_code)

    def compressor_on(self) -> bool:
        return self.read_di(Addresses.DI_COMPRESSOR_ON)

    def set_fan_groups(self, states):
        if len(states) != FAN_GROUPS:
            raise ValueError(f"Expected {FAN_GROUPS} fan group states, got {len(states)}")
        self._db.set_discrete_inputs(Addresses.DI_FAN_GROUP_BASE, [bool(s) for s in states])

    def get_fan_groups(self) -> list[bool]:
        vals = self._db.get_discrete_inputs(Addresses.DI_FAN_GROUP_BASE, FAN_GROUPS)
        if not vals:
            raise IndexError("Fan group status out of range")
        return list(vals)

    def set_fan_demand(self, demand: float):
        self.write_input(Addresses.IR_FAN_DEMAND, round(demand * DEMAND_SCALE))

    def get_fan_demand(self) -> float:
        return self.read_input(Addresses.IR_FAN_DEMAND) / DEMAND_SCALE

    def set_oat_failed(self, failed: bool):
        self.write_di(Addresses.DI_OAT_FAILED, failed)
