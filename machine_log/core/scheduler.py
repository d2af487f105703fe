"""
Periodic flush driver.

Runs a callback at a fixed interval on a one-shot timer that is re-armed
only after the callback returns, so two runs never overlap.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FlushScheduler:
    """Non-overlapping periodic runner.
    
    A failing callback is logged and the timer is re-armed anyway; that
    cycle's work is lost but later cycles still run. stop() is permanent.
    """
    
    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        """Initialize the scheduler.
        
        Args:
            interval_ms: Delay between the end of one run and the next, in ms
            callback: Work to run on each tick
            
        Raises:
            ValueError: If interval_ms is not positive
        """
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self.interval_ms = interval_ms
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._guard = threading.Lock()
        self._started = False
        self._stopped = False
    
    @property
    def running(self) -> bool:
        return self._started and not self._stopped
    
    def start(self) -> None:
        """Arm the first tick.
        
        Raises:
            RuntimeError: If the scheduler was already started or stopped
        """
        with self._guard:
            if self._started or self._stopped:
                raise RuntimeError("FlushScheduler can only be started once")
            self._started = True
            self._arm()
    
    def stop(self) -> None:
        """Cancel any pending tick and never re-arm. Idempotent."""
        with self._guard:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
    
    def _arm(self) -> None:
        timer = threading.Timer(self.interval_ms / 1000.0, self._tick)
        timer.daemon = True
        self._timer = timer
        timer.start()
    
    def _tick(self) -> None:
        with self._guard:
            if self._stopped:
                return
            self._timer = None
        
        try:
            self.callback()
        except Exception:
            logger.exception("Periodic flush failed; retrying on next tick")
        
        with self._guard:
            if not self._stopped:
                self._arm()
