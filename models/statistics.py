"""Appointment statistics for reporting."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
from models.appointment import Appointment, AppointmentStatus


def _rate(part: int, total: int) -> float:
    if total == 0:
        return 0.0
    return part * 100 / total


@dataclass(frozen=True)
class AppointmentStatistics:
    """Counts and revenue over a set of appointments."""

    total_appointments: int = 0
    completed_appointments: int = 0
    cancelled_appointments: int = 0
    no_show_appointments: int = 0
    upcoming_appointments: int = 0
    total_revenue: Decimal = Decimal('0')

    @classmethod
    def from_appointments(cls, appointments: Iterable[Appointment],
                          now: Optional[datetime] = None) -> 'AppointmentStatistics':
        """
        Aggregate a materialized list of appointments.

        Revenue counts completed, paid appointments that carry a price.
        Upcoming counts active appointments starting after ``now``.
        """
        now = now or datetime.now()
        appointments = list(appointments)

        def count(status: AppointmentStatus) -> int:
            return sum(1 for apt in appointments if apt.status == status)

        revenue = sum(
            (apt.price for apt in appointments
             if apt.status == AppointmentStatus.COMPLETED and apt.is_paid and apt.price is not None),
            Decimal('0')
        )

        return cls(
            total_appointments=len(appointments),
            completed_appointments=count(AppointmentStatus.COMPLETED),
            cancelled_appointments=count(AppointmentStatus.CANCELLED),
            no_show_appointments=count(AppointmentStatus.NO_SHOW),
            upcoming_appointments=sum(1 for apt in appointments if apt.is_active and apt.is_upcoming(now)),
            total_revenue=revenue
        )

    @property
    def completion_rate(self) -> float:
        return _rate(self.completed_appointments, self.total_appointments)

    @property
    def cancellation_rate(self) -> float:
        return _rate(self.cancelled_appointments, self.total_appointments)

    @property
    def no_show_rate(self) -> float:
        return _rate(self.no_show_appointments, self.total_appointments)

    @property
    def average_revenue(self) -> Decimal:
        """Revenue per completed appointment."""
        if self.completed_appointments == 0:
            return Decimal('0')
        return self.total_revenue / self.completed_appointments

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'total_appointments': self.total_appointments,
            'completed_appointments': self.completed_appointments,
            'cancelled_appointments': self.cancelled_appointments,
            'no_show_appointments': self.no_show_appointments,
            'upcoming_appointments': self.upcoming_appointments,
            'total_revenue': str(self.total_revenue),
            'completion_rate': round(self.completion_rate, 2),
            'cancellation_rate': round(self.cancellation_rate, 2),
            'no_show_rate': round(self.no_show_rate, 2),
            'average_revenue': str(self.average_revenue.quantize(Decimal('0.01')))
        }
