"""
JSON document codecs.

Encodes and decodes the production, machine-time and settings documents.
Durations use the .NET constant time-span text form
``[-][d.]hh:mm:ss[.fffffff]`` so existing files stay readable.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, List

from machine_log.core.time_snapshot import TimeSnapshot
from machine_log.storage.models import DailyRecord, MachineState, PartStat

# Document file names
PRODUCTION_DOCUMENT = "programtime.json"
MACHINE_TIME_DOCUMENT = "machinetime.json"
SETTINGS_DOCUMENT = "settings.json"

TICKS_PER_SECOND = 10_000_000
TICKS_PER_MICROSECOND = 10

_TIMESPAN_PATTERN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)\.)?"
    r"(?P<hours>\d{1,2}):(?P<minutes>\d{1,2}):(?P<seconds>\d{1,2})"
    r"(?:\.(?P<fraction>\d{1,7}))?$"
)


def format_timespan(value: timedelta) -> str:
    """Format a duration as ``[-][d.]hh:mm:ss[.fffffff]``."""
    ticks = ((value.days * 86400 + value.seconds) * TICKS_PER_SECOND
             + value.microseconds * TICKS_PER_MICROSECOND)
    sign = "-" if ticks < 0 else ""
    seconds, fraction = divmod(abs(ticks), TICKS_PER_SECOND)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if days:
        text = f"{days}.{text}"
    if fraction:
        text = f"{text}.{fraction:07d}"
    return sign + text


def parse_timespan(text: str) -> timedelta:
    """Parse a duration written by format_timespan() or by a .NET host.
    
    Raises:
        ValueError: If the text is not a valid time span
    """
    if not isinstance(text, str):
        raise ValueError(f"Time span must be a string, got {type(text).__name__}")
    
    match = _TIMESPAN_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Invalid time span: {text!r}")
    
    hours = int(match.group("hours"))
    minutes = int(match.group("minutes"))
    seconds = int(match.group("seconds"))
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"Time span component out of range: {text!r}")
    
    # Sub-microsecond ticks are dropped
    fraction = (match.group("fraction") or "").ljust(7, "0")
    value = timedelta(
        days=int(match.group("days") or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=int(fraction) // TICKS_PER_MICROSECOND
    )
    return -value if match.group("sign") else value


def format_date(day: date) -> str:
    return datetime.combine(day, datetime.min.time()).isoformat()


def parse_date(text: str) -> date:
    """Parse an ISO-8601 date or date-time and keep its calendar date."""
    if not isinstance(text, str):
        raise ValueError(f"Date must be a string, got {type(text).__name__}")
    # fromisoformat() before Python 3.11 rejects a trailing Z
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).date()


def _require_int(data: Dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer")
    return value


def _require_dict(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object")
    return data


def _require_list(data: Any, what: str) -> List[Any]:
    if not isinstance(data, list):
        raise ValueError(f"{what} must be an array")
    return data


def snapshot_to_document(snapshot: TimeSnapshot) -> Dict[str, Any]:
    return {
        "powerOnTime": format_timespan(snapshot.power_on_time),
        "pumpOnTime": format_timespan(snapshot.pump_on_time),
        "stroke": snapshot.stroke,
        "partsDone": snapshot.parts_done,
    }


def snapshot_from_document(data: Any) -> TimeSnapshot:
    data = _require_dict(data, "Time snapshot")
    try:
        return TimeSnapshot(
            power_on_time=parse_timespan(data["powerOnTime"]),
            pump_on_time=parse_timespan(data["pumpOnTime"]),
            stroke=_require_int(data, "stroke"),
            parts_done=_require_int(data, "partsDone")
        )
    except KeyError as e:
        raise ValueError(f"Time snapshot missing key {e}")


def production_to_document(parts: Dict[str, PartStat]) -> List[Dict[str, Any]]:
    """Encode the ledger as ``[{partName, timeTaken, partsDone}, ...]``."""
    return [
        {
            "partName": name,
            "timeTaken": format_timespan(stat.total_time),
            "partsDone": stat.count,
        }
        for name, stat in parts.items()
    ]


def production_from_document(data: Any) -> Dict[str, PartStat]:
    """Decode the production document.
    
    Raises:
        ValueError: If the document does not have the expected shape
    """
    parts: Dict[str, PartStat] = {}
    for entry in _require_list(data, "Production document"):
        entry = _require_dict(entry, "Production entry")
        try:
            name = entry["partName"]
            if not isinstance(name, str):
                raise ValueError("'partName' must be a string")
            # Later entries win, as a repeated name can only come from hand edits
            parts[name] = PartStat(
                total_time=parse_timespan(entry["timeTaken"]),
                count=_require_int(entry, "partsDone")
            )
        except KeyError as e:
            raise ValueError(f"Production entry missing key {e}")
    return parts


def machine_state_to_document(state: MachineState) -> Dict[str, Any]:
    return {
        "total": snapshot_to_document(state.total),
        "dailyLogs": [
            {"date": format_date(record.date), "data": snapshot_to_document(record.usage)}
            for record in state.history
        ],
    }


def machine_state_from_document(data: Any) -> MachineState:
    """Decode the machine-time document.
    
    Raises:
        ValueError: If the document does not have the expected shape
    """
    data = _require_dict(data, "Machine-time document")
    try:
        total = snapshot_from_document(data["total"])
        history = []
        for entry in _require_list(data["dailyLogs"], "'dailyLogs'"):
            entry = _require_dict(entry, "Daily log")
            history.append(DailyRecord(
                date=parse_date(entry["date"]),
                usage=snapshot_from_document(entry["data"])
            ))
    except KeyError as e:
        raise ValueError(f"Machine-time document missing key {e}")
    return MachineState(total=total, history=history)


def settings_to_document(storage_location: str, time_interval: int) -> Dict[str, Any]:
    return {"storageLocation": storage_location, "timeInterval": time_interval}


def settings_fields_from_document(data: Any) -> Dict[str, Any]:
    """Extract Settings constructor arguments from the settings document.
    
    A missing ``timeInterval`` is left out so the Settings default applies.
    """
    data = _require_dict(data, "Settings document")
    if not isinstance(data.get("storageLocation"), str):
        raise ValueError("'storageLocation' must be a string")
    
    fields: Dict[str, Any] = {"storage_location": data["storageLocation"]}
    if data.get("timeInterval") is not None:
        fields["time_interval"] = _require_int(data, "timeInterval")
    return fields

