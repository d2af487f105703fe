"""
Live machine-status counters supplied by the host.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol


class MachineStatus(Protocol):
    """Cumulative counters owned by the host, increasing monotonically."""
    power_on_time: timedelta
    pump_on_time: timedelta
    stroke_count: int


@dataclass
class StaticMachineStatus:
    """Fixed counter reading, for one-shot flushes and tests."""
    power_on_time: timedelta = timedelta(0)
    pump_on_time: timedelta = timedelta(0)
    stroke_count: int = 0
