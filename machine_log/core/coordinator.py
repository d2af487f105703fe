"""
Production event aggregator and flush lifecycle.

Owns the single lock that serializes host events, periodic saves,
initialize and uninitialize.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from machine_log.config.loader import (
    Settings,
    load_settings,
    resolve_log_folder,
    save_settings_if_needed
)
from machine_log.storage.documents import PRODUCTION_DOCUMENT
from machine_log.storage.store import DocumentStore
from .production import ProductionLedger
from .reconciler import MachineTimeReconciler
from .scheduler import FlushScheduler
from .status import MachineStatus

logger = logging.getLogger(__name__)


class ProductionEvents:
    """Receives host program events and persists machine statistics.

    Every public method takes the same lock before touching shared state.
    Document writes happen while the lock is held, so a slow disk delays
    incoming events until the write completes.
    """

    def __init__(
        self,
        data_folder: str,
        status: MachineStatus,
        clock: Callable[[], datetime] = datetime.now,
        scheduler_factory: Callable[[int, Callable[[], None]], FlushScheduler] = FlushScheduler
    ):
        """Initialize the aggregator.

        Args:
            data_folder: Host data folder holding settings.json
            status: Live machine-status provider owned by the host
            clock: Source of the current local time
            scheduler_factory: Builds the periodic flush driver
        """
        self.data_folder = data_folder
        self.status = status
        self.clock = clock
        self.scheduler_factory = scheduler_factory

        self._lock = threading.Lock()
        self.ledger = ProductionLedger(clock())
        self.settings: Optional[Settings] = None
        self.log_folder: Optional[Path] = None
        self.store: Optional[DocumentStore] = None
        self.reconciler: Optional[MachineTimeReconciler] = None
        self._scheduler: Optional[FlushScheduler] = None
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load settings and persisted state, then start periodic flushing.

        Raises:
            RuntimeError: If already initialized
        """
        with self._lock:
            if self._initialized:
                raise RuntimeError("ProductionEvents is already initialized")

            self.settings = load_settings(self.data_folder)
            self.log_folder = resolve_log_folder(self.settings, self.data_folder)
            self.store = DocumentStore(str(self.log_folder))
            self._load_production()

            today = self.clock().date()
            self.reconciler = MachineTimeReconciler(self.status, self.store)
            self.reconciler.load(today)
            self.ledger.seed_part_count(today, self.reconciler.parts_done_on(today))

            self._scheduler = self.scheduler_factory(self.settings.time_interval, self._flush)
            self._scheduler.start()
            self._initialized = True
            logger.info(
                "Machine log initialized at %s (flush every %d ms)",
                self.log_folder, self.settings.time_interval
            )

    def uninitialize(self) -> None:
        """Stop periodic flushing for good, write first-run settings, save."""
        with self._lock:
            if not self._initialized:
                return
            self._scheduler.stop()
            save_settings_if_needed(self.data_folder, self.settings)
            self._save()
            self._initialized = False
            logger.info("Machine log uninitialized")

    def save(self) -> None:
        """Persist the production and machine-time documents now.

        Raises:
            RuntimeError: If not initialized
            OSError: If a document cannot be written
        """
        with self._lock:
            if not self._initialized:
                raise RuntimeError("ProductionEvents is not initialized")
            self._save()

    def _flush(self) -> None:
        # A tick that was waiting on the lock during uninitialize() is dropped
        with self._lock:
            if self._initialized:
                self._save()

    def _save(self) -> None:
        self.store.write(PRODUCTION_DOCUMENT, self.ledger.to_document())
        today = self.clock().date()
        state = self.reconciler.save(self.ledger.completions_on(today), today)
        logger.debug(
            "Saved %d part(s), %d daily log(s)",
            len(self.ledger.parts), len(state.history)
        )

    def _load_production(self) -> None:
        data = self.store.read(PRODUCTION_DOCUMENT)
        try:
            self.ledger.load_document(data)
        except ValueError as e:
            logger.warning("Malformed production document, starting fresh: %s", e)

    # Host program events. quantity is accepted for interface parity only.

    def program_started(self, name: str, bend_no: int = 0, quantity: int = -1) -> None:
        with self._lock:
            self.ledger.program_started(name, self.clock())

    def program_stopped(self, name: str, bend_no: int = 0, quantity: int = -1) -> None:
        with self._lock:
            self.ledger.program_stopped(name, self.clock())

    def program_completed(self, name: str, quantity: int = -1) -> None:
        with self._lock:
            self.ledger.program_completed(name, self.clock())

    def bend_changed(self, name: str, bend_no: int) -> None:
        """Bend progress does not affect production statistics."""
