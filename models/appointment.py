"""Appointment data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from config.constants import SERVICE_DURATIONS, SERVICE_PRICES, DEFAULT_REMINDER_LEAD_HOURS
from models.recurrence import RecurrencePattern
from utils.validators import normalize_datetime


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
    AppointmentStatus.CANCELLED,
})


class ServiceType(str, Enum):
    """Massage services offered by the practice."""

    SWEDISH = "swedish"
    DEEP_TISSUE = "deep_tissue"
    SPORTS = "sports"
    PRENATAL = "prenatal"
    HOT_STONE = "hot_stone"
    AROMATHERAPY = "aromatherapy"
    THERAPEUTIC = "therapeutic"
    MEDICAL = "medical"
    COUPLES = "couples"

    @property
    def default_duration(self) -> int:
        return SERVICE_DURATIONS.get(self.value, 60)

    @property
    def list_price(self) -> Optional[Decimal]:
        price = SERVICE_PRICES.get(self.value)
        return Decimal(price) if price is not None else None

    @property
    def display_name(self) -> str:
        return self.value.replace('_', ' ').title()


def new_appointment_id() -> str:
    return f"apt_{uuid.uuid4().hex[:12]}"


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return normalize_datetime(datetime.fromisoformat(value.replace('Z', '+00:00')))


@dataclass
class Appointment:
    """
    A booked massage appointment.

    The end time is always derived from ``start_datetime`` and
    ``duration_minutes``. Series children carry ``parent_appointment_id``;
    only the series parent holds the ``recurrence_pattern``.
    """

    client_id: str
    start_datetime: datetime
    duration_minutes: int
    service_type: ServiceType
    id: str = field(default_factory=new_appointment_id)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    price: Optional[Decimal] = None
    is_paid: bool = False
    notes: Optional[str] = None

    # Confirmation
    is_confirmed: bool = False
    confirmed_at: Optional[datetime] = None

    # Cancellation
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    # Completion
    client_showed_up: Optional[bool] = None

    # Reminders
    reminder_sent: bool = False
    reminder_sent_at: Optional[datetime] = None

    # Recurrence
    is_recurring: bool = False
    parent_appointment_id: Optional[str] = None
    recurrence_pattern: Optional[RecurrencePattern] = None

    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def end_datetime(self) -> datetime:
        return self.start_datetime + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        """Non-terminal appointments take part in conflict checks."""
        return not self.status.is_terminal

    @property
    def can_be_cancelled(self) -> bool:
        return self.is_active

    @property
    def is_series_parent(self) -> bool:
        return self.is_recurring and self.parent_appointment_id is None

    @property
    def series_id(self) -> Optional[str]:
        """Id of the series parent, or None for one-off appointments."""
        if not self.is_recurring:
            return None
        return self.parent_appointment_id or self.id

    @property
    def time_range_display(self) -> str:
        """Display time range (e.g., "2:00 PM - 3:00 PM")."""
        start = self.start_datetime.strftime('%I:%M %p').lstrip('0')
        end = self.end_datetime.strftime('%I:%M %p').lstrip('0')
        return f"{start} - {end}"

    def is_today(self, now: Optional[datetime] = None) -> bool:
        return self.start_datetime.date() == (now or datetime.now()).date()

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return self.start_datetime > (now or datetime.now())

    def can_be_rescheduled(self, now: Optional[datetime] = None) -> bool:
        return self.is_active and self.is_upcoming(now)

    def needs_reminder(self, now: Optional[datetime] = None,
                       lead_hours: int = DEFAULT_REMINDER_LEAD_HOURS) -> bool:
        """
        Check whether a reminder should be sent now.

        Args:
            now: Current time (defaults to datetime.now())
            lead_hours: Hours before the start time when reminders open

        Returns:
            True if active, upcoming, not yet reminded and inside the lead window
        """
        now = now or datetime.now()
        if self.reminder_sent or not self.is_active or not self.is_upcoming(now):
            return False
        return now >= self.start_datetime - timedelta(hours=lead_hours)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.id,
            'client_id': self.client_id,
            'start_datetime': self.start_datetime.isoformat(),
            'end_datetime': self.end_datetime.isoformat(),
            'duration_minutes': self.duration_minutes,
            'service_type': self.service_type.value,
            'status': self.status.value,
            'price': str(self.price) if self.price is not None else None,
            'is_paid': self.is_paid,
            'notes': self.notes,
            'is_confirmed': self.is_confirmed,
            'confirmed_at': self.confirmed_at.isoformat() if self.confirmed_at else None,
            'cancellation_reason': self.cancellation_reason,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'client_showed_up': self.client_showed_up,
            'reminder_sent': self.reminder_sent,
            'reminder_sent_at': self.reminder_sent_at.isoformat() if self.reminder_sent_at else None,
            'is_recurring': self.is_recurring,
            'parent_appointment_id': self.parent_appointment_id,
            'recurrence_pattern': self.recurrence_pattern.to_dict() if self.recurrence_pattern else None,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Appointment':
        """Create Appointment from dictionary."""
        pattern_data = data.get('recurrence_pattern')
        price = data.get('price')

        return cls(
            id=data['id'],
            client_id=data['client_id'],
            start_datetime=_parse_datetime(data['start_datetime']),
            duration_minutes=int(data['duration_minutes']),
            service_type=ServiceType(data['service_type']),
            status=AppointmentStatus(data.get('status', AppointmentStatus.SCHEDULED.value)),
            price=Decimal(str(price)) if price is not None else None,
            is_paid=data.get('is_paid', False),
            notes=data.get('notes'),
            is_confirmed=data.get('is_confirmed', False),
            confirmed_at=_parse_datetime(data.get('confirmed_at')),
            cancellation_reason=data.get('cancellation_reason'),
            cancelled_at=_parse_datetime(data.get('cancelled_at')),
            client_showed_up=data.get('client_showed_up'),
            reminder_sent=data.get('reminder_sent', False),
            reminder_sent_at=_parse_datetime(data.get('reminder_sent_at')),
            is_recurring=data.get('is_recurring', False),
            parent_appointment_id=data.get('parent_appointment_id'),
            recurrence_pattern=RecurrencePattern.from_dict(pattern_data) if pattern_data else None,
            created_at=_parse_datetime(data.get('created_at')) or datetime.now(),
            updated_at=_parse_datetime(data.get('updated_at')) or datetime.now()
        )
