"""Cycle driver for the condensing unit controls against a simulated plant.

Polls each block exactly once per tick, in a fixed order:
 - compressor: start/stop sequencing
 - fan: condenser fan staging and rotation
 - sensors: plant simulation feeding the next tick's readings

Everything lives in one in-memory process image (data_model), nothing is
exposed on the network.
"""

import argparse
import logging
import time

from .data_model import DataModel, Addresses, PRESSURE_SCALE
from .compressor import CompressorConfig, CompressorSequencer
from .fan import FanConfig, FanStagingEngine
from .sensors import PlantSimulator

# option name -> (holding register, scale)
CONFIG_OPTIONS = {
    'min_run_time': (Addresses.HR_MIN_RUN_TIME, 1),
    'min_stop_time': (Addresses.HR_MIN_STOP_TIME, 1),
    'safety_timer': (Addresses.HR_SAFETY_TIMER, 1),
    'max_runtime': (Addresses.HR_MAX_RUNTIME, 1),
    'min_off_time': (Addresses.HR_MIN_OFF_TIME, 1),
    'min_cond_pressure': (Addresses.HR_MIN_COND_PRESSURE, PRESSURE_SCALE),
    'max_cond_pressure': (Addresses.HR_MAX_COND_PRESSURE, PRESSURE_SCALE),
    'sensor_band': (Addresses.HR_SENSOR_BAND, PRESSURE_SCALE),
}


def build_arg_parser():
    parser = argparse.ArgumentParser(description='Run the condensing unit control cycle')
    parser.add_argument('-d', '--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--interval', type=float, default=1.0, help='Seconds between ticks (default 1.0, 0 = no wait)')
    parser.add_argument('--ticks', type=int, default=0, help='Number of ticks to run (default 0 = until interrupted)')
    parser.add_argument('--tick', type=float, default=1.0, help='Time credited to the timers per tick (default 1.0)')
    parser.add_argument('--duty-window', type=int, default=10, help='Ticks per partial fan group duty cycle (default 10)')
    parser.add_argument('--no-interlocks', action='store_true', help='Ignore LPS/HPS in the compressor sequencer')
    parser.add_argument('--min-run-time', type=int, help='Minimum compressor run time in ticks (default 180)')
    parser.add_argument('--min-stop-time', type=int, help='Minimum compressor stop time in ticks (default 300)')
    parser.add_argument('--safety-timer', type=int, help='Safety timer restart delay in ticks (default 600)')
    parser.add_argument('--max-runtime', type=int, help='Longest continuous fan run before rotating it out (default 0 = off)')
    parser.add_argument('--min-off-time', type=int, help='Shortest fan rest before a restart (default 0)')
    parser.add_argument('--min-cond-pressure', type=float, help='Minimum condensing pressure, psi (default 150.0)')
    parser.add_argument('--max-cond-pressure', type=float, help='Maximum condensing pressure, psi (default 350.0)')
    parser.add_argument('--sensor-band', type=float, help='Sensor filter band (default 0.5)')
    return parser


def apply_config(model, args):
    """Write command line overrides into the configuration registers."""
    for name, (addr, scale) in CONFIG_OPTIONS.items():
        value = getattr(args, name)
        if value is None:
            continue
        if value < 0:
            raise ValueError(f"{name} must not be negative, got {value}")
        scaled = round(value * scale)
        if scaled > 0xFFFF:
            raise ValueError(f"{name} does not fit a 16-bit register, got {value}")
        model.write_holding(addr, scaled)


def run(model, compressor, fans, sensors, ticks=0, interval=1.0):
    log = logging.getLogger('app')
    count = 0
    while ticks <= 0 or count < ticks:
        compressor.update()
        fans.update()
        sensors.update()
        count += 1
        log.info('tick %d: compressor %s (%s) demand %.2f groups %s head %.1f oat %.1f',
                 count, 'ON' if compressor.compressor_on else 'off', compressor.state.state.name,
                 fans.demand, ''.join('1' if g else '0' for g in fans.state.group_states),
                 model.get_head_pressure(), model.get_oat())
        if interval > 0:
            time.sleep(interval)
    return count


def main(argv=None):
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    log = logging.getLogger('app')

    if args.tick <= 0:
        parser.error(f'--tick must be positive, got {args.tick}')

    data_model = DataModel()
    try:
        apply_config(data_model, args)
        compressor = CompressorSequencer(
            data_model,
            CompressorConfig.from_model(data_model, interlocks=not args.no_interlocks),
            tick=args.tick,
        )
        fans = FanStagingEngine(data_model, FanConfig.from_model(data_model, args.duty_window), tick=args.tick)
    except ValueError as exc:
        parser.error(str(exc))
    sensors = PlantSimulator(data_model)

    log.info('Starting control cycle (tick %.2f, interval %.2fs)', args.tick, args.interval)
    try:
        run(data_model, compressor, fans, sensors, args.ticks, args.interval)
    except KeyboardInterrupt:
        log.info('Stopping control cycle...')


if __name__ == '__main__':
    main()
