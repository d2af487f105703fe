"""
Machine time reconciliation.

Merges the host's live cumulative machine counters into the persisted
all-time total and its day-bucketed history.

Reconciliation Steps:
1. Find today's entry in the history
2. Remove today's stored usage from the total, leaving all prior days
3. Take power-on, pump-on and stroke from the live counters; rebuild
   parts-done from prior days plus today's completion count
4. Today's usage is the new total minus all prior days
5. Replace today's entry in place, or append it on the first save of a day
"""

import logging
from datetime import date
from typing import Optional

from .status import MachineStatus
from .time_snapshot import EMPTY_SNAPSHOT, TimeSnapshot, subtract
from machine_log.storage.documents import (
    MACHINE_TIME_DOCUMENT,
    machine_state_from_document,
    machine_state_to_document
)
from machine_log.storage.models import DailyRecord, MachineState
from machine_log.storage.store import DocumentStore

logger = logging.getLogger(__name__)


def read_live_snapshot(status: MachineStatus) -> TimeSnapshot:
    """Read the host counters; the host does not track parts, so parts_done is 0."""
    return TimeSnapshot(
        power_on_time=status.power_on_time,
        pump_on_time=status.pump_on_time,
        stroke=status.stroke_count,
        parts_done=0
    )


def bootstrap_state(live: TimeSnapshot, today: date) -> MachineState:
    """Create fresh-install state.

    The running total starts at whatever the live counters already read,
    with zero parts, and today's entry starts empty.
    """
    total = TimeSnapshot(
        power_on_time=live.power_on_time,
        pump_on_time=live.pump_on_time,
        stroke=live.stroke,
        parts_done=0
    )
    return MachineState(total=total, history=[DailyRecord(date=today, usage=EMPTY_SNAPSHOT)])


def find_day(state: MachineState, day: date) -> Optional[int]:
    """Index of the history entry for day, or None."""
    for index, record in enumerate(state.history):
        if record.date == day:
            return index
    return None


def total_excluding_day(state: MachineState, day: date) -> TimeSnapshot:
    """Usage accrued on every day other than the given one."""
    index = find_day(state, day)
    if index is None:
        return state.total
    return subtract(state.total, state.history[index].usage)


def reconcile(
    state: MachineState,
    live: TimeSnapshot,
    parts_today: int,
    today: date
) -> MachineState:
    """Merge a live counter reading into the machine state.

    The live power-on, pump-on and stroke values are trusted as ground
    truth. The live parts_done field is ignored since the host may not
    track parts; parts-done is rebuilt from prior days plus parts_today.

    A live counter lower than the prior-days total (e.g. after a host
    replacement) yields a negative usage for today, stored unclamped.

    Args:
        state: Persisted state, not modified
        live: Current cumulative counter reading
        parts_today: Parts completed today
        today: Current calendar day

    Returns:
        New state with updated total and today's entry
    """
    index = find_day(state, today)
    prior_days = total_excluding_day(state, today)

    total = TimeSnapshot(
        power_on_time=live.power_on_time,
        pump_on_time=live.pump_on_time,
        stroke=live.stroke,
        parts_done=prior_days.parts_done + parts_today
    )
    record = DailyRecord(date=today, usage=subtract(total, prior_days))

    history = list(state.history)
    if index is not None:
        history[index] = record
    else:
        history.append(record)
    return MachineState(total=total, history=history)


class MachineTimeReconciler:
    """Owns the machine state and its machine-time document.

    Not thread-safe; callers hold the shared lock around load() and save().
    """

    def __init__(self, status: MachineStatus, store: DocumentStore):
        """Initialize the reconciler.

        Args:
            status: Live machine-status provider owned by the host
            store: Document store for the machine-time document
        """
        self.status = status
        self.store = store
        self.state: Optional[MachineState] = None

    def load(self, today: date) -> MachineState:
        """Load persisted state, bootstrapping it on fresh install.

        A missing, unreadable or malformed document is treated as a fresh
        install.
        """
        data = self.store.read(MACHINE_TIME_DOCUMENT)
        state = None
        if data is not None:
            try:
                state = machine_state_from_document(data)
            except ValueError as e:
                logger.warning("Malformed machine-time document, starting fresh: %s", e)

        if state is None:
            state = bootstrap_state(read_live_snapshot(self.status), today)
            logger.info(
                "No machine-time history found, bootstrapping from live counters "
                "(stroke=%d)", state.total.stroke
            )
        self.state = state
        return state

    def save(self, parts_today: int, today: date) -> MachineState:
        """Reconcile against the live counters and persist the result.

        Raises:
            RuntimeError: If called before load()
            OSError: If the document cannot be written
        """
        if self.state is None:
            raise RuntimeError("Machine state has not been loaded")

        state = reconcile(self.state, read_live_snapshot(self.status), parts_today, today)
        self.store.write(MACHINE_TIME_DOCUMENT, machine_state_to_document(state))
        self.state = state
        return state

    def parts_done_on(self, day: date) -> int:
        """Stored parts-done for a day, 0 if the day has no entry."""
        if self.state is None:
            return 0
        index = find_day(self.state, day)
        if index is None:
            return 0
        return self.state.history[index].usage.parts_done
