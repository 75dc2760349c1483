"""Clock and calendar-day boundaries.

The engine never decides what a "day" is. Callers inject a Clock whose
``day_start`` maps any instant to the (timezone-aware) start of its
calendar day; the engine only walks those boundaries.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Protocol
from zoneinfo import ZoneInfo

DayStart = Callable[[datetime], datetime]

# Any instant this far past a day start lies inside the following day,
# whatever DST does to the day's length.
_NEXT_DAY_PROBE = timedelta(hours=36)


class Clock(Protocol):
    def now(self) -> datetime: ...

    def day_start(self, instant: datetime) -> datetime: ...


def _zone_day_start(tz: tzinfo, instant: datetime) -> datetime:
    local = instant.astimezone(tz)
    return datetime(local.year, local.month, local.day, tzinfo=tz)


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Wall-clock time with day boundaries in a given IANA time zone."""
    tz_name: str = "UTC"
    _tz: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_tz", ZoneInfo(self.tz_name))

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def day_start(self, instant: datetime) -> datetime:
        return _zone_day_start(self._tz, instant)


@dataclass(slots=True)
class FixedClock:
    """Manually advanced clock, for tests and replays."""
    current: datetime
    tz: tzinfo = timezone.utc

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def day_start(self, instant: datetime) -> datetime:
        return _zone_day_start(self.tz, instant)


def next_day_start(day_start: DayStart, start: datetime) -> datetime:
    return day_start(start + _NEXT_DAY_PROBE)


def day_boundaries(day_start: DayStart, as_of: datetime, count: int) -> list[datetime]:
    """Start of ``as_of``'s day followed by the next ``count`` day starts."""
    bounds = [day_start(as_of)]
    for _ in range(count):
        bounds.append(next_day_start(day_start, bounds[-1]))
    return bounds


def calendar_date(day_start: DayStart, instant: datetime) -> date:
    """Calendar date of the day containing ``instant``."""
    return day_start(instant).date()
