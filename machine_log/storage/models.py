"""
Data models for the storage layer.

Defines the persisted production and machine-time records.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List

from machine_log.core.time_snapshot import TimeSnapshot


@dataclass(frozen=True)
class PartStat:
    """Lifetime production statistics for one part name."""
    total_time: timedelta
    count: int
    
    def __post_init__(self):
        """Validate count is not negative."""
        if self.count < 0:
            raise ValueError("count cannot be negative")


@dataclass(frozen=True)
class DailyRecord:
    """Machine usage accrued on one calendar day."""
    date: date
    usage: TimeSnapshot


@dataclass
class MachineState:
    """All-time machine usage plus the day-bucketed history.
    
    total equals the sum of every history entry's usage, plus the
    machine's counters as they read on first install. History is kept in
    insertion order, one entry per day, and is never pruned.
    """
    total: TimeSnapshot
    history: List[DailyRecord] = field(default_factory=list)
