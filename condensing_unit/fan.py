"""Condenser fan staging.

Every tick the engine filters the analog inputs, works out a fan demand in
groups (0..4) and energizes that many groups. Four logical groups are served
by six physical fans: group g runs on the g-th fan picked from the rotation
queue, the remaining fans are standby. The queue is stable-sorted by
cumulative runtime each tick so the least used fans are picked first.

When the outdoor air sensor is implausible the demand falls back to the
position of head pressure inside the configured condensing pressure range.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field, replace

from .data_model import FAN_GROUPS, DataModel

log = logging.getLogger(__name__)

FAN_COUNT = 6

OAT_MIN = -20.0
OAT_MAX = 110.0
OAT_EXTREME = 90.0
TEMP_DIFF_EXTREME = 30.0
TEMP_DIFF_PER_GROUP = 10.0
MAX_DEMAND = float(FAN_GROUPS)


@dataclass(frozen=True)
class FanConfig:
    max_runtime: float = 0       # 0 = no limit on a continuous run
    min_off_time: float = 0
    min_cond_pressure: float = 150.0
    max_cond_pressure: float = 350.0
    sensor_band: float = 0.5
    duty_window: int = 10        # ticks per partial-group duty cycle

    def __post_init__(self):
        for name in ('max_runtime', 'min_off_time', 'sensor_band'):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")
        if self.duty_window < 1:
            raise ValueError(f"duty_window must be at least 1, got {self.duty_window}")

    @property
    def pressure_span(self) -> float:
        return self.max_cond_pressure - self.min_cond_pressure

    @classmethod
    def from_model(cls, model: DataModel, duty_window: int = 10) -> FanConfig:
        return cls(
            max_runtime=model.get_max_runtime(),
            min_off_time=model.get_min_off_time(),
            min_cond_pressure=model.get_min_cond_pressure(),
            max_cond_pressure=model.get_max_cond_pressure(),
            sensor_band=model.get_sensor_band(),
            duty_window=duty_window,
        )


@dataclass(frozen=True)
class FanInputs:
    head_pressure: float
    oat: float
    saturated_temp: float

    @classmethod
    def from_model(cls, model: DataModel) -> FanInputs:
        return cls(
            head_pressure=model.get_head_pressure(),
            oat=model.get_oat(),
            saturated_temp=model.get_saturated_temp(),
        )


@dataclass(frozen=True)
class FanUnit:
    fan_id: int
    run_time: float = 0.0
    off_time: float = 0.0
    active: bool = False
    streak: float = 0.0  # time in the current on/off condition


@dataclass(frozen=True)
class SensorFilter:
    """Last accepted value per sensor, None until the first reading."""
    head_pressure: float | None = None
    oat: float | None = None
    saturated_temp: float | None = None


def _initial_fans() -> tuple[FanUnit, ...]:
    return tuple(FanUnit(fan_id=i + 1) for i in range(FAN_COUNT))


@dataclass(frozen=True)
class EngineState:
    filtered: SensorFilter = field(default_factory=SensorFilter)
    fans: tuple[FanUnit, ...] = field(default_factory=_initial_fans)
    queue: tuple[int, ...] = tuple(range(FAN_COUNT))  # indexes into `fans`
    oat_failed: bool = False
    demand: float = 0.0
    group_states: tuple[bool, ...] = (False,) * FAN_GROUPS
    group_fans: tuple[int | None, ...] = (None,) * FAN_GROUPS
    ticks: int = 0


def clamp(value: float, low: float = 0.0, high: float = MAX_DEMAND) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def filter_reading(previous: float | None, raw: float, band: float) -> float:
    """Accept `raw` only if it moved more than `band` away from `previous`."""
    if previous is None or math.isnan(previous):
        return raw
    if abs(raw - previous) > band:
        return raw
    return previous


def oat_failed(oat: float) -> bool:
    # NaN fails too: every comparison with it is False
    return not (OAT_MIN <= oat <= OAT_MAX)


def compute_demand(head_pressure: float, oat: float, saturated_temp: float,
                   failed: bool, config: FanConfig) -> float:
    if failed:
        span = config.pressure_span
        if span <= 0:
            demand = 0.0
        else:
            demand = clamp((head_pressure - config.min_cond_pressure) / span * MAX_DEMAND)
    else:
        temp_diff = saturated_temp - oat
        if oat > OAT_EXTREME or temp_diff > TEMP_DIFF_EXTREME:
            demand = MAX_DEMAND
        else:
            demand = clamp(temp_diff / TEMP_DIFF_PER_GROUP)

    # Pressure limits override everything above
    if head_pressure > config.max_cond_pressure:
        demand = MAX_DEMAND
    elif head_pressure < config.min_cond_pressure:
        demand = 0.0
    return demand


def stage_groups(demand: float, tick_index: int, duty_window: int) -> tuple[bool, ...]:
    """Whole groups from floor(demand); the remainder duty-cycles the next one.

    Within each window of `duty_window` ticks the partial group is on for the
    first round(fraction * duty_window) ticks.
    """
    full = int(math.floor(clamp(demand)))
    on_ticks = round((demand - full) * duty_window)
    partial = full < FAN_GROUPS and (tick_index % duty_window) < on_ticks
    return tuple(g < full or (g == full and partial) for g in range(FAN_GROUPS))


def sort_queue(queue: tuple[int, ...], fans: tuple[FanUnit, ...]) -> tuple[int, ...]:
    # sorted() is stable, equal runtimes keep their previous order
    return tuple(sorted(queue, key=lambda i: fans[i].run_time))


def select_fans(queue: tuple[int, ...], fans: tuple[FanUnit, ...], count: int,
                config: FanConfig) -> tuple[int, ...]:
    """Pick `count` fans in queue order, deferring fans the policy wants rested.

    A fan is deferred when it stopped less than `min_off_time` ago, or when it
    has been running for `max_runtime` or longer. Deferred fans are still used
    if there are not enough others.
    """
    def deferred(unit: FanUnit) -> bool:
        if unit.active:
            return config.max_runtime > 0 and unit.streak >= config.max_runtime
        return unit.streak < config.min_off_time

    preferred = [i for i in queue if not deferred(fans[i])]
    held = [i for i in queue if deferred(fans[i])]
    return tuple((preferred + held)[:count])


def rotate(fans: tuple[FanUnit, ...], queue: tuple[int, ...], count: int,
           config: FanConfig, tick: float = 1.0):
    """Re-sort the queue and run the first `count` selected fans for one tick.

    Returns (fans, queue, selected).
    """
    queue = sort_queue(queue, fans)
    selected = select_fans(queue, fans, count, config)
    updated = []
    for i, unit in enumerate(fans):
        on = i in selected
        streak = unit.streak + tick if on == unit.active else tick
        if on:
            updated.append(replace(unit, run_time=unit.run_time + tick, active=True, streak=streak))
        else:
            updated.append(replace(unit, off_time=unit.off_time + tick, active=False, streak=streak))
    return tuple(updated), queue, selected


def step(state: EngineState, inputs: FanInputs, config: FanConfig,
         tick: float = 1.0) -> EngineState:
    if tick <= 0:
        raise ValueError(f"tick must be positive, got {tick}")

    filtered = SensorFilter(
        head_pressure=filter_reading(state.filtered.head_pressure, inputs.head_pressure, config.sensor_band),
        oat=filter_reading(state.filtered.oat, inputs.oat, config.sensor_band),
        saturated_temp=filter_reading(state.filtered.saturated_temp, inputs.saturated_temp, config.sensor_band),
    )
    failed = oat_failed(filtered.oat)
    demand = compute_demand(filtered.head_pressure, filtered.oat, filtered.saturated_temp, failed, config)
    groups = stage_groups(demand, state.ticks, config.duty_window)

    fans, queue, selected = rotate(state.fans, state.queue, sum(groups), config, tick)
    # Energized groups always form a prefix, so group g maps to selected[g]
    group_fans = tuple(fans[selected[g]].fan_id if on else None for g, on in enumerate(groups))

    return EngineState(
        filtered=filtered,
        fans=fans,
        queue=queue,
        oat_failed=failed,
        demand=demand,
        group_states=groups,
        group_fans=group_fans,
        ticks=state.ticks + 1,
    )


@dataclass
class FanStagingEngine:
    model: DataModel
    config: FanConfig | None = None
    tick: float = 1.0
    state: EngineState = field(default_factory=EngineState)

    def __post_init__(self):
        if self.tick <= 0:
            raise ValueError(f"tick must be positive, got {self.tick}")
        if self.config is None:
            self.config = FanConfig.from_model(self.model)
        if self.config.pressure_span <= 0:
            log.warning('Condensing pressure range is empty (min %.1f, max %.1f); '
                        'fallback demand pinned to 0',
                        self.config.min_cond_pressure, self.config.max_cond_pressure)

    def update(self) -> tuple[bool, ...]:
        was_failed = self.state.oat_failed
        self.state = step(self.state, FanInputs.from_model(self.model), self.config, self.tick)

        if self.state.oat_failed and not was_failed:
            log.warning('OAT sensor implausible (%.1f), staging on head pressure',
                        self.state.filtered.oat)
        elif was_failed and not self.state.oat_failed:
            log.info('OAT sensor back in range (%.1f)', self.state.filtered.oat)
        log.debug('Fan demand %.2f groups %s fans %s', self.state.demand,
                  self.state.group_states, self.state.group_fans)

        self.model.set_fan_demand(self.state.demand)
        self.model.set_fan_groups(self.state.group_states)
        self.model.set_oat_failed(self.state.oat_failed)
        return self.state.group_states

    @property
    def demand(self) -> float:
        return self.state.demand

    @property
    def active_fans(self) -> list[int]:
        return [unit.fan_id for unit in self.state.fans if unit.active]
