from dataclasses import dataclass
from datetime import datetime, timezone

_NS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class TimeRecord:
    timestamp: str
    ip: str


@dataclass(frozen=True)
class HealthRecord:
    status: str = "healthy"


def rfc3339_nano(ns: int) -> str:
    """Format nanoseconds since the epoch as an RFC 3339 UTC timestamp.

    Up to nine fraction digits, trailing zeros dropped, no fraction at all
    on a whole second: ``2023-11-14T22:13:20.1234Z``.
    """
    seconds, frac = divmod(ns, _NS_PER_SECOND)
    stamp = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    if frac:
        stamp += "." + f"{frac:09d}".rstrip("0")
    return stamp + "Z"


def time_record(ns: int, ip: str) -> TimeRecord:
    return TimeRecord(timestamp=rfc3339_nano(ns), ip=ip)


def health_record() -> HealthRecord:
    return HealthRecord()
