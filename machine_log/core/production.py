"""
Per-part production ledger.

Accumulates time in production and completion counts per part name,
driven by program start, stop and completion events from the host.
"""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from machine_log.storage.documents import production_from_document, production_to_document
from machine_log.storage.models import PartStat


class ProductionLedger:
    """In-memory map from part name to accumulated (time, count).

    A single "current part" slot tracks the running program. Time accrues
    into that slot across start/stop cycles and is credited to the part
    on completion.

    The ledger does no locking of its own. Callers serialize every
    mutation and every read made while saving under one lock.
    """

    def __init__(self, now: Optional[datetime] = None):
        """Initialize an empty ledger.

        Args:
            now: Initial start timestamp, defaults to the current time
        """
        self.parts: Dict[str, PartStat] = {}
        self.current_part = ""
        self.start_time = now or datetime.now()
        self.time_taken = timedelta(0)
        self.part_count = 0
        self.part_count_date: Optional[date] = None

    def program_started(self, name: str, now: datetime) -> None:
        """Record that a program started or resumed.

        Switching to a different part discards time accrued for the
        previous part that has not yet been credited by a completion.
        """
        if name != self.current_part:
            self.time_taken = timedelta(0)
        self.start_time = now
        self.current_part = name

    def program_stopped(self, name: str, now: datetime) -> None:
        """Record a stop or pause; the elapsed run time stays accrued."""
        self.time_taken += now - self.start_time

    def program_completed(self, name: str, now: datetime) -> PartStat:
        """Credit accrued time and one completed unit to a part.

        Args:
            name: Part (program) name, created with zero stats if unseen
            now: Completion timestamp

        Returns:
            The part's updated statistics
        """
        self.time_taken += now - self.start_time
        existing = self.parts.get(name, PartStat(total_time=timedelta(0), count=0))
        stat = PartStat(
            total_time=existing.total_time + self.time_taken,
            count=existing.count + 1
        )
        self.parts[name] = stat

        # Next unit starts timing from here
        self.time_taken = timedelta(0)
        self.start_time = now

        if self.part_count_date != now.date():
            self.part_count = 0
            self.part_count_date = now.date()
        self.part_count += 1
        return stat

    def seed_part_count(self, day: date, count: int) -> None:
        """Continue the daily completion count from a persisted value."""
        self.part_count = count
        self.part_count_date = day

    def completions_on(self, day: date) -> int:
        """Number of completions recorded on the given calendar day."""
        if self.part_count_date != day:
            return 0
        return self.part_count

    def to_document(self) -> List[Dict[str, Any]]:
        return production_to_document(self.parts)

    def load_document(self, data: Optional[Any]) -> None:
        """Merge a decoded production document into the ledger.

        Persisted entries replace in-memory ones with the same name. None
        (fresh install) leaves the ledger unchanged.

        Raises:
            ValueError: If the document does not have the expected shape
        """
        if data is None:
            return
        self.parts.update(production_from_document(data))
