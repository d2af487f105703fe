"""
Machine usage snapshots.

Holds the four machine usage counters as one immutable value.
"""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class TimeSnapshot:
    """Machine usage over some window, or since machine install.
    
    A snapshot read from the live counters is cumulative. The result of
    subtract() is a window and must never be stored as a total.
    """
    power_on_time: timedelta
    pump_on_time: timedelta
    stroke: int
    parts_done: int


EMPTY_SNAPSHOT = TimeSnapshot(
    power_on_time=timedelta(0),
    pump_on_time=timedelta(0),
    stroke=0,
    parts_done=0
)


def subtract(a: TimeSnapshot, b: TimeSnapshot) -> TimeSnapshot:
    """Component-wise difference a - b.
    
    Only meaningful when both operands are cumulative since the same
    origin. No clamping is applied, so a counter reset on the host shows
    up as negative fields.
    
    Args:
        a: Later cumulative snapshot
        b: Earlier cumulative snapshot
        
    Returns:
        The usage accrued between b and a
    """
    return TimeSnapshot(
        power_on_time=a.power_on_time - b.power_on_time,
        pump_on_time=a.pump_on_time - b.pump_on_time,
        stroke=a.stroke - b.stroke,
        parts_done=a.parts_done - b.parts_done
    )
