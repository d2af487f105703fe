"""
Integration tests for the production event aggregator.

Drives ProductionEvents with a controllable clock and a manual scheduler
and checks the persisted documents.
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from machine_log.core.coordinator import ProductionEvents
from machine_log.core.status import StaticMachineStatus


class FakeClock:
    """Settable stand-in for datetime.now."""
    
    def __init__(self, now: datetime):
        self.now = now
    
    def __call__(self) -> datetime:
        return self.now
    
    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ManualScheduler:
    """Scheduler double that only ticks when told to."""
    
    instances = []
    
    def __init__(self, interval_ms, callback):
        self.interval_ms = interval_ms
        self.callback = callback
        self.started = False
        self.stopped = False
        ManualScheduler.instances.append(self)
    
    def start(self):
        self.started = True
    
    def stop(self):
        self.stopped = True
    
    def tick(self):
        self.callback()


class TestProductionEvents:
    """Test lifecycle, events and persistence."""
    
    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.clock = FakeClock(datetime(2024, 1, 1, 9, 0, 0))
        self.status = StaticMachineStatus(
            power_on_time=timedelta(hours=5),
            pump_on_time=timedelta(hours=2),
            stroke_count=100
        )
        ManualScheduler.instances = []
    
    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def _events(self) -> ProductionEvents:
        return ProductionEvents(
            self.temp_dir,
            self.status,
            clock=self.clock,
            scheduler_factory=ManualScheduler
        )
    
    def _read(self, name: str):
        with open(os.path.join(self.temp_dir, "Log", name), encoding='utf-8') as f:
            return json.load(f)
    
    def test_fresh_install(self):
        events = self._events()
        events.initialize()
        events.save()
        
        assert self._read("programtime.json") == []
        assert self._read("machinetime.json") == {
            "total": {"powerOnTime": "05:00:00", "pumpOnTime": "02:00:00", "stroke": 100, "partsDone": 0},
            "dailyLogs": [
                {
                    "date": "2024-01-01T00:00:00",
                    "data": {"powerOnTime": "00:00:00", "pumpOnTime": "00:00:00", "stroke": 0, "partsDone": 0}
                }
            ]
        }
    
    def test_scheduler_started_with_settings_interval(self):
        with open(os.path.join(self.temp_dir, "settings.json"), 'w', encoding='utf-8') as f:
            json.dump({"storageLocation": os.path.join(self.temp_dir, "Log"), "timeInterval": 2500}, f)
        
        events = self._events()
        events.initialize()
        
        scheduler = ManualScheduler.instances[-1]
        assert scheduler.started
        assert scheduler.interval_ms == 2500
    
    def test_scheduler_tick_saves(self):
        events = self._events()
        events.initialize()
        events.program_started("A")
        self.clock.advance(minutes=4)
        events.program_completed("A")
        
        ManualScheduler.instances[-1].tick()
        
        assert self._read("programtime.json") == [{"partName": "A", "timeTaken": "00:04:00", "partsDone": 1}]
        assert self._read("machinetime.json")["total"]["partsDone"] == 1
    
    def test_production_events_with_pause(self):
        events = self._events()
        events.initialize()
        
        events.program_started("BRACKET", bend_no=1, quantity=10)
        self.clock.advance(minutes=3)
        events.program_stopped("BRACKET", bend_no=4, quantity=10)
        self.clock.advance(minutes=30)
        events.program_started("BRACKET", bend_no=4, quantity=10)
        self.clock.advance(minutes=2)
        events.bend_changed("BRACKET", 5)
        events.program_completed("BRACKET", quantity=10)
        events.save()
        
        assert self._read("programtime.json") == [{"partName": "BRACKET", "timeTaken": "00:05:00", "partsDone": 1}]
    
    def test_machine_time_reconciled_on_save(self):
        events = self._events()
        events.initialize()
        for _ in range(3):
            events.program_started("A")
            self.clock.advance(minutes=1)
            events.program_completed("A")
        self.status.power_on_time = timedelta(hours=6)
        self.status.pump_on_time = timedelta(hours=2, minutes=30)
        self.status.stroke_count = 160
        
        events.save()
        
        document = self._read("machinetime.json")
        assert document["total"] == {"powerOnTime": "06:00:00", "pumpOnTime": "02:30:00", "stroke": 160, "partsDone": 3}
        assert document["dailyLogs"][0]["data"] == {
            "powerOnTime": "01:00:00", "pumpOnTime": "00:30:00", "stroke": 60, "partsDone": 3
        }
    
    def test_save_twice_is_idempotent(self):
        events = self._events()
        events.initialize()
        events.program_completed("A")
        self.status.stroke_count = 120
        events.save()
        first = self._read("machinetime.json")
        
        events.save()
        
        assert self._read("machinetime.json") == first
    
    def test_day_rollover(self):
        events = self._events()
        events.initialize()
        events.program_completed("A")
        events.program_completed("A")
        self.status.stroke_count = 140
        events.save()
        day1_entry = self._read("machinetime.json")["dailyLogs"][0]
        
        self.clock.now = datetime(2024, 1, 2, 0, 1, 0)
        events.program_completed("A")
        self.status.stroke_count = 150
        events.save()
        
        document = self._read("machinetime.json")
        assert document["dailyLogs"][0] == day1_entry
        assert document["dailyLogs"][1] == {
            "date": "2024-01-02T00:00:00",
            "data": {"powerOnTime": "00:00:00", "pumpOnTime": "00:00:00", "stroke": 10, "partsDone": 1}
        }
        assert document["total"]["partsDone"] == 3
    
    def test_restart_same_day_continues_counts(self):
        events = self._events()
        events.initialize()
        self.clock.advance(minutes=10)
        events.program_completed("A")
        events.program_completed("A")
        self.status.stroke_count = 130
        events.uninitialize()
        
        restarted = self._events()
        restarted.initialize()
        self.clock.advance(minutes=10)
        restarted.program_completed("A")
        restarted.save()
        
        document = self._read("machinetime.json")
        assert document["total"]["partsDone"] == 3
        assert document["dailyLogs"] == [{
            "date": "2024-01-01T00:00:00",
            "data": {"powerOnTime": "00:00:00", "pumpOnTime": "00:00:00", "stroke": 30, "partsDone": 3}
        }]
        assert self._read("programtime.json") == [{"partName": "A", "timeTaken": "00:20:00", "partsDone": 3}]
    
    def test_uninitialize_writes_settings_on_first_run(self):
        events = self._events()
        events.initialize()
        events.uninitialize()
        
        with open(os.path.join(self.temp_dir, "settings.json"), encoding='utf-8') as f:
            assert json.load(f) == {
                "storageLocation": str(Path(self.temp_dir) / "Log"),
                "timeInterval": 10000
            }
        assert ManualScheduler.instances[-1].stopped
    
    def test_uninitialize_never_modifies_existing_settings(self):
        path = os.path.join(self.temp_dir, "settings.json")
        original = json.dumps({"storageLocation": os.path.join(self.temp_dir, "custom"), "timeInterval": 7000})
        with open(path, 'w', encoding='utf-8') as f:
            f.write(original)
        
        for _ in range(2):
            events = self._events()
            events.initialize()
            events.uninitialize()
            events.uninitialize()
        
        with open(path, encoding='utf-8') as f:
            assert f.read() == original
    
    def test_tick_after_uninitialize_is_ignored(self):
        events = self._events()
        events.initialize()
        events.uninitialize()
        before = self._read("machinetime.json")
        self.status.stroke_count = 999
        
        ManualScheduler.instances[-1].tick()
        
        assert self._read("machinetime.json") == before
    
    def test_save_before_initialize_raises(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            self._events().save()
    
    def test_initialize_twice_raises(self):
        events = self._events()
        events.initialize()
        with pytest.raises(RuntimeError, match="already initialized"):
            events.initialize()
    
    def test_malformed_production_document_starts_fresh(self, caplog):
        os.makedirs(os.path.join(self.temp_dir, "Log"))
        with open(os.path.join(self.temp_dir, "Log", "programtime.json"), 'w', encoding='utf-8') as f:
            f.write('{"partName": "A"}')
        
        events = self._events()
        events.initialize()
        events.save()
        
        assert self._read("programtime.json") == []
        assert "Malformed production document" in caplog.text
    
    def test_write_failure_propagates(self):
        events = self._events()
        events.initialize()
        
        with patch.object(events.store, "write", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                events.save()
    
    def test_concurrent_completions_are_all_counted(self):
        events = self._events()
        events.initialize()
        
        def produce(name):
            for _ in range(200):
                events.program_completed(name)
        
        threads = [threading.Thread(target=produce, args=(name,)) for name in ("A", "B", "A", "C")]
        saver = threading.Thread(target=lambda: [events.save() for _ in range(20)])
        for thread in threads + [saver]:
            thread.start()
        for thread in threads + [saver]:
            thread.join()
        events.save()
        
        parts = {entry["partName"]: entry["partsDone"] for entry in self._read("programtime.json")}
        assert parts == {"A": 400, "B": 200, "C": 200}
        assert self._read("machinetime.json")["total"]["partsDone"] == 800
