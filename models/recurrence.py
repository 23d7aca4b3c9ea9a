"""Recurrence pattern models for repeating appointment series."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Union
from dateutil.relativedelta import relativedelta
from config.constants import RECURRENCE_MAX_NEVER, RECURRENCE_MAX_ON_DATE
from models.errors import UnsupportedRecurrenceError
from utils.validators import normalize_datetime


class RecurrenceFrequency(str, Enum):
    """How often an appointment recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class RecurrenceEndType(str, Enum):
    """When a recurrence ends."""

    NEVER = "never"
    AFTER_OCCURRENCES = "after_occurrences"
    ON_DATE = "on_date"


def _parse_end_date(value: Optional[str]) -> Optional[Union[date, datetime]]:
    if not value:
        return None
    if 'T' in value:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    return date.fromisoformat(value)


@dataclass(frozen=True)
class RecurrencePattern:
    """
    Repetition rule for a series of appointments.

    Exactly one end condition is active. ``occurrence_count`` is the total
    number of occurrences including the first one. ``end_date`` may be a
    ``date`` (inclusive, whole day) or a ``datetime``.
    """

    frequency: RecurrenceFrequency
    interval: int = 1
    end_type: RecurrenceEndType = RecurrenceEndType.NEVER
    occurrence_count: Optional[int] = None
    end_date: Optional[Union[date, datetime]] = None

    def __post_init__(self):
        # Coerce plain strings so patterns built from JSON compare equal
        object.__setattr__(self, 'frequency', RecurrenceFrequency(self.frequency))
        object.__setattr__(self, 'end_type', RecurrenceEndType(self.end_type))
        if isinstance(self.end_date, datetime):
            object.__setattr__(self, 'end_date', normalize_datetime(self.end_date))

        if self.interval < 1:
            raise ValueError(f"Recurrence interval must be >= 1, got {self.interval}")

        if self.end_type == RecurrenceEndType.AFTER_OCCURRENCES:
            if self.occurrence_count is None or self.occurrence_count < 1:
                raise ValueError("'after occurrences' recurrence requires occurrence_count >= 1")
            if self.end_date is not None:
                raise ValueError("'after occurrences' recurrence cannot also set end_date")
        elif self.end_type == RecurrenceEndType.ON_DATE:
            if self.end_date is None:
                raise ValueError("'on date' recurrence requires end_date")
            if self.occurrence_count is not None:
                raise ValueError("'on date' recurrence cannot also set occurrence_count")
        elif self.occurrence_count is not None or self.end_date is not None:
            raise ValueError("'never' recurrence takes no occurrence_count or end_date")

    @classmethod
    def never(cls, frequency: RecurrenceFrequency, interval: int = 1) -> 'RecurrencePattern':
        """Open-ended pattern."""
        return cls(frequency=frequency, interval=interval)

    @classmethod
    def after(cls, frequency: RecurrenceFrequency, count: int, interval: int = 1) -> 'RecurrencePattern':
        """Pattern ending after ``count`` occurrences."""
        return cls(
            frequency=frequency,
            interval=interval,
            end_type=RecurrenceEndType.AFTER_OCCURRENCES,
            occurrence_count=count
        )

    @classmethod
    def until(cls, frequency: RecurrenceFrequency, end_date: Union[date, datetime],
              interval: int = 1) -> 'RecurrencePattern':
        """Pattern ending on ``end_date``."""
        return cls(
            frequency=frequency,
            interval=interval,
            end_type=RecurrenceEndType.ON_DATE,
            end_date=end_date
        )

    @property
    def is_supported(self) -> bool:
        return self.frequency != RecurrenceFrequency.CUSTOM

    def _step(self, steps: int):
        if self.frequency == RecurrenceFrequency.DAILY:
            return timedelta(days=self.interval * steps)
        if self.frequency == RecurrenceFrequency.WEEKLY:
            return timedelta(weeks=self.interval * steps)
        if self.frequency == RecurrenceFrequency.BIWEEKLY:
            return timedelta(weeks=2 * self.interval * steps)
        if self.frequency == RecurrenceFrequency.MONTHLY:
            return relativedelta(months=self.interval * steps)
        raise UnsupportedRecurrenceError(
            f"Recurrence frequency '{self.frequency.value}' cannot be expanded"
        )

    def next_occurrence(self, after: datetime) -> datetime:
        """
        Get the next occurrence after a given start time.

        Args:
            after: Start time of the current occurrence

        Returns:
            Start time of the following occurrence

        Raises:
            UnsupportedRecurrenceError: For custom frequencies
        """
        return after + self._step(1)

    def occurrences(self, first: datetime) -> Iterator[datetime]:
        """
        Yield the start times that follow ``first``, without an end.

        Each occurrence is computed from ``first`` rather than from the
        previous occurrence, so monthly series anchored on the 31st return
        to the 31st after passing through shorter months.
        """
        steps = 1
        while True:
            yield first + self._step(steps)
            steps += 1

    def occurrence_ceiling(self) -> int:
        """Maximum number of occurrences (including the first) a series may hold."""
        if self.end_type == RecurrenceEndType.AFTER_OCCURRENCES:
            return self.occurrence_count
        if self.end_type == RecurrenceEndType.ON_DATE:
            return RECURRENCE_MAX_ON_DATE
        return RECURRENCE_MAX_NEVER

    def is_past_end(self, candidate: datetime) -> bool:
        """Check whether a candidate start time falls after the end date."""
        if self.end_type != RecurrenceEndType.ON_DATE:
            return False
        if isinstance(self.end_date, datetime):
            return candidate > self.end_date
        return candidate.date() > self.end_date

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'frequency': self.frequency.value,
            'interval': self.interval,
            'end_type': self.end_type.value,
            'occurrence_count': self.occurrence_count,
            'end_date': self.end_date.isoformat() if self.end_date else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecurrencePattern':
        """Create RecurrencePattern from dictionary."""
        return cls(
            frequency=RecurrenceFrequency(data['frequency']),
            interval=int(data.get('interval', 1)),
            end_type=RecurrenceEndType(data.get('end_type', RecurrenceEndType.NEVER.value)),
            occurrence_count=data.get('occurrence_count'),
            end_date=_parse_end_date(data.get('end_date'))
        )
