"""Plant simulation for head pressure, outdoor air and saturated temperature.

Creates plausible values tied to the compressor and fan group outputs.
"""
from __future__ import annotations
import random
from dataclasses import dataclass

from .data_model import DataModel

OAT_BASE = 75.0        # °F
HEAD_FLOOR = 60.0      # psi, equalized pressure with everything off
HEAD_CEILING = 450.0
HEAD_RISE = 12.0       # psi per tick with the compressor on
FAN_PULL = 5.0         # psi per tick per energized group
BLEED = 4.0            # psi per tick with the compressor off


def saturation_temp(head_pressure: float) -> float:
    # Linear fit over the working range, 220 psi -> 95 °F
    return 0.25 * head_pressure + 40.0


@dataclass
class PlantSimulator:
    model: DataModel

    def update(self):
        if not self.model.get_sim_enabled():
            return

        groups = sum(self.model.get_fan_groups())

        # Outdoor air: base with +-2.0 °F jitter
        oat = OAT_BASE + random.randint(-20, 20) / 10
        self.model.set_oat(oat)

        head = self.model.get_head_pressure()
        if self.model.compressor_on():
            head += HEAD_RISE - FAN_PULL * groups
        else:
            head -= BLEED + groups
        head += random.randint(-5, 5) / 10
        head = max(HEAD_FLOOR, min(HEAD_CEILING, head))
        self.model.set_head_pressure(head)

        self.model.set_saturated_temp(saturation_temp(head))
