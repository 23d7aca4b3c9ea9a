"""Therapist availability models."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from config.constants import DEFAULT_WORKING_HOURS, WEEKDAYS
from utils.intervals import overlaps


def _parse_time(value: Optional[str]) -> Optional[time]:
    if not value:
        return None
    return datetime.strptime(value, '%H:%M').time()


def _format_time(value: Optional[time]) -> Optional[str]:
    return value.strftime('%H:%M') if value else None


@dataclass(frozen=True)
class WorkingHours:
    """Working window for one day, with an optional break."""

    is_working: bool = True
    start: time = time(9, 0)
    end: time = time(17, 0)
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    def __post_init__(self):
        if not self.is_working:
            return

        if self.start >= self.end:
            raise ValueError(f"Working hours start {self.start} must be before end {self.end}")

        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("Break requires both start and end")

        if self.break_start is not None:
            if self.break_start >= self.break_end:
                raise ValueError(f"Break start {self.break_start} must be before end {self.break_end}")
            if self.break_start < self.start or self.break_end > self.end:
                raise ValueError("Break must lie within working hours")

    @classmethod
    def closed(cls) -> 'WorkingHours':
        return cls(is_working=False)

    @classmethod
    def from_strings(cls, start: Optional[str], end: Optional[str],
                     break_start: Optional[str] = None, break_end: Optional[str] = None) -> 'WorkingHours':
        """Build from HH:MM strings; (None, None) means closed."""
        if start is None or end is None:
            return cls.closed()
        return cls(
            start=_parse_time(start),
            end=_parse_time(end),
            break_start=_parse_time(break_start),
            break_end=_parse_time(break_end)
        )

    @property
    def has_break(self) -> bool:
        return self.is_working and self.break_start is not None

    @property
    def total_minutes(self) -> int:
        """Working minutes for the day, excluding the break."""
        if not self.is_working:
            return 0
        minutes = _minutes(self.end) - _minutes(self.start)
        if self.has_break:
            minutes -= _minutes(self.break_end) - _minutes(self.break_start)
        return minutes

    def window_on(self, day: date) -> Tuple[datetime, datetime]:
        return datetime.combine(day, self.start), datetime.combine(day, self.end)

    def break_on(self, day: date) -> Optional[Tuple[datetime, datetime]]:
        if not self.has_break:
            return None
        return datetime.combine(day, self.break_start), datetime.combine(day, self.break_end)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'is_working': self.is_working,
            'start': _format_time(self.start) if self.is_working else None,
            'end': _format_time(self.end) if self.is_working else None,
            'break_start': _format_time(self.break_start),
            'break_end': _format_time(self.break_end)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkingHours':
        """Create WorkingHours from dictionary."""
        if not data.get('is_working', True):
            return cls.closed()
        return cls.from_strings(
            data.get('start'),
            data.get('end'),
            data.get('break_start'),
            data.get('break_end')
        )


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


class TimeOffType(str, Enum):
    """Type of time off."""

    VACATION = "vacation"
    SICK = "sick"
    CONFERENCE = "conference"
    HOLIDAY = "holiday"
    PERSONAL = "personal"
    OTHER = "other"


@dataclass(frozen=True)
class TimeOffPeriod:
    """A closed range of whole days when the therapist does not work."""

    start_date: date
    end_date: date
    type: TimeOffType = TimeOffType.VACATION
    reason: Optional[str] = None

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError("Time off start_date must not be after end_date")

    def includes(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def duration_in_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'type': self.type.value,
            'reason': self.reason,
            'duration_in_days': self.duration_in_days
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeOffPeriod':
        """Create TimeOffPeriod from dictionary."""
        return cls(
            start_date=date.fromisoformat(data['start_date']),
            end_date=date.fromisoformat(data['end_date']),
            type=TimeOffType(data.get('type', TimeOffType.VACATION.value)),
            reason=data.get('reason')
        )


@dataclass(frozen=True)
class WeeklyAvailability:
    """
    A therapist's weekly working pattern.

    Resolution order for a given date: a date-specific override, then any
    time-off period covering the date, then the weekday default. Weekdays
    are indexed as in ``date.weekday()`` (Monday is 0). Instances are
    snapshots; the ``with_*`` helpers return modified copies.
    """

    weekly_hours: Mapping[int, WorkingHours] = field(default_factory=dict)
    overrides: Mapping[date, WorkingHours] = field(default_factory=dict)
    time_off: Tuple[TimeOffPeriod, ...] = ()
    buffer_minutes: int = 0

    def __post_init__(self):
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must be >= 0")
        object.__setattr__(self, 'time_off', tuple(self.time_off))

    @classmethod
    def default(cls, buffer_minutes: int = 0) -> 'WeeklyAvailability':
        """Monday-Friday 9am-5pm."""
        weekly = {
            index: WorkingHours.from_strings(*DEFAULT_WORKING_HOURS[name])
            for index, name in enumerate(WEEKDAYS)
        }
        return cls(weekly_hours=weekly, buffer_minutes=buffer_minutes)

    def with_weekday(self, weekday: int, hours: WorkingHours) -> 'WeeklyAvailability':
        weekly = dict(self.weekly_hours)
        weekly[weekday] = hours
        return replace(self, weekly_hours=weekly)

    def with_override(self, day: date, hours: WorkingHours) -> 'WeeklyAvailability':
        overrides = dict(self.overrides)
        overrides[day] = hours
        return replace(self, overrides=overrides)

    def with_closure(self, day: date) -> 'WeeklyAvailability':
        return self.with_override(day, WorkingHours.closed())

    def with_time_off(self, period: TimeOffPeriod) -> 'WeeklyAvailability':
        return replace(self, time_off=self.time_off + (period,))

    def is_time_off(self, day: date) -> bool:
        return any(period.includes(day) for period in self.time_off)

    def hours_for(self, day: date) -> WorkingHours:
        """Resolve the working hours that apply on a specific date."""
        override = self.overrides.get(day)
        if override is not None:
            return override
        if self.is_time_off(day):
            return WorkingHours.closed()
        return self.weekly_hours.get(day.weekday(), WorkingHours.closed())

    def works_on(self, day: date) -> bool:
        return self.hours_for(day).is_working

    def is_available(self, start: datetime, duration_minutes: int) -> bool:
        """
        Check if the therapist works for the whole of [start, start + duration).

        Args:
            start: Appointment start time
            duration_minutes: Appointment length

        Returns:
            True if inside working hours and clear of the break
        """
        hours = self.hours_for(start.date())
        if not hours.is_working:
            return False

        end = start + timedelta(minutes=duration_minutes)
        window_start, window_end = hours.window_on(start.date())
        if start < window_start or end > window_end:
            return False

        break_window = hours.break_on(start.date())
        if break_window and overlaps(start, end, *break_window):
            return False

        return True

    def available_slots(self, day: date, duration_minutes: int) -> List[datetime]:
        """
        List candidate start times on a date.

        Candidates step by the duration plus ``buffer_minutes`` from the start
        of the working window; those crossing the break or the end of the day
        are dropped.

        Args:
            day: Date to list slots for
            duration_minutes: Slot length

        Returns:
            Sorted start times
        """
        hours = self.hours_for(day)
        if not hours.is_working or duration_minutes <= 0:
            return []

        slots = []
        step = timedelta(minutes=duration_minutes + self.buffer_minutes)
        current, window_end = hours.window_on(day)

        while current < window_end:
            if self.is_available(current, duration_minutes):
                slots.append(current)
            current += step

        return slots

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'weekly_hours': {
                WEEKDAYS[index]: hours.to_dict() for index, hours in sorted(self.weekly_hours.items())
            },
            'overrides': {
                day.isoformat(): hours.to_dict() for day, hours in sorted(self.overrides.items())
            },
            'time_off': [period.to_dict() for period in self.time_off],
            'buffer_minutes': self.buffer_minutes
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WeeklyAvailability':
        """Create WeeklyAvailability from dictionary."""
        return cls(
            weekly_hours={
                WEEKDAYS.index(name.lower()): WorkingHours.from_dict(hours)
                for name, hours in data.get('weekly_hours', {}).items()
            },
            overrides={
                date.fromisoformat(day): WorkingHours.from_dict(hours)
                for day, hours in data.get('overrides', {}).items()
            },
            time_off=tuple(TimeOffPeriod.from_dict(period) for period in data.get('time_off', [])),
            buffer_minutes=int(data.get('buffer_minutes', 0))
        )
