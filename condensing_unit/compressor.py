"""Compressor sequencing for the condensing unit.

A 9-state machine decides whether the compressor runs. Anti-short-cycling is
built into the guards: a stop request while running waits for the minimum run
time, a start request while stopped waits for the minimum stop time.

The transition logic is the pure function `step`; `CompressorSequencer` keeps
one `SequencerState` between ticks and binds it to the process image.

Tick handling: guards see the time accumulated over completed ticks, then the
current tick is credited to the state's timer. The reported output is the
output of the state the tick ends in.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from enum import IntEnum

from .data_model import DataModel

log = logging.getLogger(__name__)


class CompressorState(IntEnum):
    OFF = 0
    STARTING = 1
    RUNNING = 2
    FORCED_OFF = 3
    OFF_BY_ALARM = 4
    OFF_BY_SAFETY_TIMER = 5
    ON_BY_SAFETY_TIMER = 6
    MANUAL = 7
    PUMPDOWN = 8


ON_STATES = frozenset({
    CompressorState.STARTING,
    CompressorState.RUNNING,
    CompressorState.ON_BY_SAFETY_TIMER,
    CompressorState.MANUAL,
    CompressorState.PUMPDOWN,
})


@dataclass(frozen=True)
class CompressorConfig:
    """Timing limits, in the same unit as the tick.

    `interlocks` wires the LPS/HPS switches into ForcedOff. Turn it off to run
    the bare transition table, where ForcedOff is only reachable by `force`.
    """
    min_run_time: float = 180
    min_stop_time: float = 300
    safety_timer: float = 600
    interlocks: bool = True

    def __post_init__(self):
        for name in ('min_run_time', 'min_stop_time', 'safety_timer'):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

    @classmethod
    def from_model(cls, model: DataModel, interlocks: bool = True) -> CompressorConfig:
        return cls(
            min_run_time=model.get_min_run_time(),
            min_stop_time=model.get_min_stop_time(),
            safety_timer=model.get_safety_timer(),
            interlocks=interlocks,
        )


@dataclass(frozen=True)
class CompressorInputs:
    enable: bool = False
    lps: bool = False        # True = switch open
    hps: bool = False        # True = switch open
    alarm: bool = False
    manual_mode: bool = False
    pumpdown: bool = False

    @property
    def tripped(self) -> bool:
        return self.lps or self.hps

    @classmethod
    def from_model(cls, model: DataModel) -> CompressorInputs:
        return cls(
            enable=model.enable(),
            lps=model.lps_tripped(),
            hps=model.hps_tripped(),
            alarm=model.alarm(),
            manual_mode=model.manual_mode(),
            pumpdown=model.pumpdown_requested(),
        )


@dataclass(frozen=True)
class SequencerState:
    state: CompressorState = CompressorState.OFF
    run_timer: float = 0.0
    stop_timer: float = 0.0
    safety_timer_counter: float = 0.0

    @property
    def compressor_on(self) -> bool:
        return self.state in ON_STATES


def step(current: SequencerState, inputs: CompressorInputs, config: CompressorConfig,
         tick: float = 1.0) -> tuple[SequencerState, bool]:
    """Advance the sequencer by one tick.

    Returns the new state and the CompressorOn output. Within a state the
    transitions are checked in priority order and the first match wins.
    """
    if tick <= 0:
        raise ValueError(f"tick must be positive, got {tick}")

    state = CompressorState(current.state)
    run = current.run_timer
    stop = current.stop_timer
    safety = current.safety_timer_counter
    interlock = config.interlocks and inputs.tripped
    nxt = state

    if state is CompressorState.OFF:
        if inputs.manual_mode:
            nxt = CompressorState.MANUAL
        elif inputs.alarm:
            nxt = CompressorState.OFF_BY_ALARM
        elif inputs.pumpdown:
            nxt = CompressorState.PUMPDOWN
        elif inputs.enable and stop >= config.min_stop_time and not interlock:
            nxt = CompressorState.STARTING
        stop += tick

    elif state is CompressorState.STARTING:
        run = 0.0
        stop = 0.0
        nxt = CompressorState.FORCED_OFF if interlock else CompressorState.RUNNING

    elif state is CompressorState.RUNNING:
        if inputs.alarm:
            nxt = CompressorState.OFF_BY_ALARM
        elif interlock:
            nxt = CompressorState.FORCED_OFF
        elif run >= config.min_run_time and inputs.pumpdown:
            nxt = CompressorState.PUMPDOWN
        elif run >= config.min_run_time and not inputs.enable:
            nxt = CompressorState.OFF
        run += tick

    elif state is CompressorState.FORCED_OFF:
        if stop >= config.min_stop_time and inputs.enable and not interlock:
            nxt = CompressorState.STARTING
        stop += tick

    elif state is CompressorState.OFF_BY_ALARM:
        if not inputs.alarm:
            nxt = CompressorState.OFF

    elif state is CompressorState.OFF_BY_SAFETY_TIMER:
        if safety >= config.safety_timer:
            nxt = CompressorState.ON_BY_SAFETY_TIMER
        safety += tick

    elif state is CompressorState.ON_BY_SAFETY_TIMER:
        safety = 0.0
        nxt = CompressorState.FORCED_OFF if interlock else CompressorState.RUNNING

    elif state is CompressorState.MANUAL:
        if not inputs.manual_mode:
            nxt = CompressorState.OFF

    elif state is CompressorState.PUMPDOWN:
        if not inputs.pumpdown:
            nxt = CompressorState.OFF

    new = SequencerState(state=nxt, run_timer=run, stop_timer=stop, safety_timer_counter=safety)
    return new, new.compressor_on


@dataclass
class CompressorSequencer:
    model: DataModel
    config: CompressorConfig | None = None
    tick: float = 1.0
    state: SequencerState = field(default_factory=SequencerState)

    def __post_init__(self):
        if self.tick <= 0:
            raise ValueError(f"tick must be positive, got {self.tick}")
        if self.config is None:
            self.config = CompressorConfig.from_model(self.model)

    def update(self) -> bool:
        inputs = CompressorInputs.from_model(self.model)
        previous = self.state.state
        self.state, on = step(self.state, inputs, self.config, self.tick)
        if self.state.state is not previous:
            self._log_transition(previous, inputs)
        self.model.set_compressor(on, int(self.state.state))
        return on

    def force(self, state: CompressorState):
        """Place the machine in `state` from outside the transition table.

        This is the entry path for the safety timer states (and for ForcedOff
        when interlocks are disabled). Timers are left untouched.
        """
        if not isinstance(state, CompressorState):
            raise ValueError(f"Not a compressor state: {state!r}")
        previous = self.state.state
        self.state = replace(self.state, state=state)
        log.info('Compressor forced %s -> %s', previous.name, state.name)
        self.model.set_compressor(self.state.compressor_on, int(state))

    @property
    def compressor_on(self) -> bool:
        return self.state.compressor_on

    def _log_transition(self, previous: CompressorState, inputs: CompressorInputs):
        current = self.state.state
        if current is CompressorState.OFF_BY_ALARM:
            log.warning('Compressor locked out by alarm (was %s)', previous.name)
        elif current is CompressorState.FORCED_OFF:
            log.warning('Compressor forced off: LPS=%s HPS=%s', inputs.lps, inputs.hps)
        else:
            log.info('Compressor %s -> %s', previous.name, current.name)
