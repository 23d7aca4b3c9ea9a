"""Appointment booking, conflict detection and recurring series."""

import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from config.constants import DEFAULT_REMINDER_LEAD_HOURS, DEFAULT_UPCOMING_LIMIT, RECURRENCE_MAX_SKIPPED
from models.appointment import Appointment, AppointmentStatus, ServiceType
from models.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UnavailableError,
    UnsupportedRecurrenceError,
)
from models.recurrence import RecurrencePattern
from models.schedule import WeeklyAvailability
from models.statistics import AppointmentStatistics
from services.storage import AppointmentStore
from utils.intervals import overlaps
from utils.logger import setup_logger, ContextLogger
from utils.validators import normalize_datetime

logger = setup_logger(__name__)


class AppointmentScheduler:
    """
    Single therapist calendar.

    Every public method holds one re-entrant lock, so a conflict check and
    the mutation it guards are never interleaved with another caller.
    Methods return copies of the stored appointments; all changes go
    through the scheduler.

    Mutations are applied in memory first and then written to the store.
    A failed write leaves the scheduler dirty; ``flush()`` retries it.
    """

    def __init__(
        self,
        availability: Optional[WeeklyAvailability] = None,
        store: Optional[AppointmentStore] = None,
        lead_hours: int = DEFAULT_REMINDER_LEAD_HOURS,
        count_skipped_occurrences: bool = True,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.availability = availability
        self.store = store
        self.lead_hours = lead_hours
        self.count_skipped_occurrences = count_skipped_occurrences
        self._clock = clock
        self._lock = threading.RLock()
        self._appointments: Dict[str, Appointment] = {}
        self._dirty = False

        if store is not None:
            self.load()

    # Persistence

    def load(self) -> int:
        """
        Replace the in-memory collection with the store's contents.

        Returns:
            Number of appointments loaded
        """
        with self._lock:
            appointments = self.store.load_all() if self.store is not None else []
            self._appointments = {apt.id: apt for apt in appointments}
            self._dirty = False
            logger.info(f"Scheduler loaded {len(self._appointments)} appointments")
            return len(self._appointments)

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dirty

    def flush(self):
        """
        Write the current collection to the store.

        Raises:
            Exception: Whatever the store raised; the scheduler stays dirty
        """
        with self._lock:
            if self.store is None:
                self._dirty = False
                return
            self.store.save_all(list(self._appointments.values()))
            self._dirty = False

    def _persist(self):
        self._dirty = True
        try:
            self.flush()
        except Exception as e:
            logger.error(f"Failed to save appointments, changes kept in memory: {e}")

    # Queries

    def _snapshot(self, appointment: Appointment) -> Appointment:
        return replace(appointment)

    def _sorted(self, appointments) -> List[Appointment]:
        return [self._snapshot(apt) for apt in sorted(appointments, key=lambda apt: apt.start_datetime)]

    def _get(self, appointment_id: str) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            logger.warning(f"Appointment not found: {appointment_id}")
            raise NotFoundError(f"Appointment {appointment_id} not found", appointment_id=appointment_id)
        return appointment

    def get_appointment(self, appointment_id: str) -> Appointment:
        with self._lock:
            return self._snapshot(self._get(appointment_id))

    def all_appointments(self) -> List[Appointment]:
        with self._lock:
            return self._sorted(self._appointments.values())

    def find_conflicts(
        self,
        start: datetime,
        duration_minutes: int,
        exclude_id: Optional[str] = None
    ) -> List[Appointment]:
        """
        List active appointments overlapping [start, start + duration).

        Args:
            start: Candidate start time
            duration_minutes: Candidate length
            exclude_id: Appointment to ignore (the one being rescheduled)

        Returns:
            Overlapping appointments, sorted by start time
        """
        start = normalize_datetime(start)
        end = start + timedelta(minutes=duration_minutes)
        with self._lock:
            return self._sorted(
                apt for apt in self._appointments.values()
                if apt.id != exclude_id
                and apt.is_active
                and overlaps(start, end, apt.start_datetime, apt.end_datetime)
            )

    def has_conflict(
        self,
        start: datetime,
        duration_minutes: int,
        exclude_id: Optional[str] = None
    ) -> bool:
        return bool(self.find_conflicts(start, duration_minutes, exclude_id))

    def appointments_on(self, day: date) -> List[Appointment]:
        with self._lock:
            return self._sorted(
                apt for apt in self._appointments.values() if apt.start_datetime.date() == day
            )

    def todays_appointments(self) -> List[Appointment]:
        """Appointments starting on the current date, in any status."""
        now = self._clock()
        with self._lock:
            return self._sorted(apt for apt in self._appointments.values() if apt.is_today(now))

    def appointments_between(self, start: datetime, end: datetime) -> List[Appointment]:
        """Appointments starting within [start, end], inclusive on both ends."""
        start, end = normalize_datetime(start), normalize_datetime(end)
        with self._lock:
            return self._sorted(
                apt for apt in self._appointments.values() if start <= apt.start_datetime <= end
            )

    def appointments_for_client(self, client_id: str) -> List[Appointment]:
        with self._lock:
            return self._sorted(
                apt for apt in self._appointments.values() if apt.client_id == client_id
            )

    def upcoming_appointments(self, limit: int = DEFAULT_UPCOMING_LIMIT) -> List[Appointment]:
        now = self._clock()
        with self._lock:
            upcoming = self._sorted(
                apt for apt in self._appointments.values() if apt.is_active and apt.is_upcoming(now)
            )
        return upcoming[:limit]

    def series(self, parent_id: str) -> List[Appointment]:
        """All occurrences of a recurring series, parent first."""
        with self._lock:
            self._get(parent_id)
            return self._sorted(
                apt for apt in self._appointments.values()
                if apt.id == parent_id or apt.parent_appointment_id == parent_id
            )

    def series_pattern(self, appointment_id: str) -> Optional[RecurrencePattern]:
        """Recurrence pattern for any occurrence, resolved through the series parent."""
        with self._lock:
            appointment = self._get(appointment_id)
            if appointment.parent_appointment_id:
                parent = self._appointments.get(appointment.parent_appointment_id)
                return parent.recurrence_pattern if parent else None
            return appointment.recurrence_pattern

    def appointments_needing_reminders(self) -> List[Appointment]:
        now = self._clock()
        with self._lock:
            return self._sorted(
                apt for apt in self._appointments.values() if apt.needs_reminder(now, self.lead_hours)
            )

    def available_time_slots(self, day: date, duration_minutes: int) -> List[datetime]:
        """
        Free start times on a date.

        Args:
            day: Date to search
            duration_minutes: Requested appointment length

        Returns:
            Slot start times from the availability that have no conflict;
            empty when no availability is configured
        """
        if self.availability is None:
            return []
        with self._lock:
            candidates = self.availability.available_slots(day, duration_minutes)
            return [slot for slot in candidates if not self.has_conflict(slot, duration_minutes)]

    def statistics(self, start: datetime, end: datetime) -> AppointmentStatistics:
        return AppointmentStatistics.from_appointments(self.appointments_between(start, end), now=self._clock())

    # Booking

    def _check_slot(self, start: datetime, duration_minutes: int, exclude_id: Optional[str] = None):
        conflicts = self.find_conflicts(start, duration_minutes, exclude_id)
        if conflicts:
            raise ConflictError(
                f"Time slot {start.isoformat()} conflicts with another appointment",
                conflicting_ids=[apt.id for apt in conflicts],
                appointment_id=exclude_id
            )

        if self.availability is not None and not self.availability.is_available(start, duration_minutes):
            raise UnavailableError(
                f"Therapist is not available at {start.isoformat()} for {duration_minutes} minutes",
                appointment_id=exclude_id
            )

    def _is_bookable(self, start: datetime, duration_minutes: int) -> bool:
        if self.has_conflict(start, duration_minutes):
            return False
        if self.availability is not None and not self.availability.is_available(start, duration_minutes):
            return False
        return True

    def _new_appointment(
        self,
        client_id: str,
        start: datetime,
        duration_minutes: Optional[int],
        service_type: ServiceType,
        price: Optional[Decimal],
        notes: Optional[str]
    ) -> Appointment:
        service_type = ServiceType(service_type)
        if duration_minutes is None:
            duration_minutes = service_type.default_duration
        if duration_minutes <= 0:
            raise ValueError(f"Appointment duration must be positive, got {duration_minutes}")

        now = self._clock()
        return Appointment(
            client_id=client_id,
            start_datetime=normalize_datetime(start),
            duration_minutes=duration_minutes,
            service_type=service_type,
            price=price if price is not None else service_type.list_price,
            notes=notes,
            created_at=now,
            updated_at=now
        )

    def book_appointment(
        self,
        client_id: str,
        start: datetime,
        duration_minutes: Optional[int] = None,
        service_type: ServiceType = ServiceType.SWEDISH,
        price: Optional[Decimal] = None,
        notes: Optional[str] = None
    ) -> Appointment:
        """
        Book a single appointment.

        Args:
            client_id: Client identifier
            start: Appointment start time
            duration_minutes: Length in minutes (defaults to the service's duration)
            service_type: Type of massage
            price: Price (defaults to the service's list price)
            notes: Optional notes

        Returns:
            The booked appointment

        Raises:
            ConflictError: Overlaps an active appointment
            UnavailableError: Outside working hours or inside a break
        """
        ctx_logger = ContextLogger(logger, client_id=client_id)

        with self._lock:
            appointment = self._new_appointment(client_id, start, duration_minutes, service_type, price, notes)

            try:
                self._check_slot(appointment.start_datetime, appointment.duration_minutes)
            except (ConflictError, UnavailableError) as e:
                ctx_logger.warning(f"Booking rejected: {e}")
                raise

            self._appointments[appointment.id] = appointment
            self._persist()

        ctx_logger.info(
            f"Booked {appointment.service_type.value} {appointment.id} at {appointment.start_datetime.isoformat()}"
        )
        return self._snapshot(appointment)

    def create_recurring_series(
        self,
        client_id: str,
        first_start: datetime,
        pattern: RecurrencePattern,
        duration_minutes: Optional[int] = None,
        service_type: ServiceType = ServiceType.SWEDISH,
        price: Optional[Decimal] = None,
        notes: Optional[str] = None
    ) -> List[Appointment]:
        """
        Book a recurring series.

        The first occurrence becomes the series parent and holds the pattern.
        Later occurrences that conflict with an active appointment, or fall
        outside working hours, are skipped. With ``count_skipped_occurrences``
        a skipped date still uses up one of the pattern's occurrences;
        without it the series keeps advancing until the requested number
        exists or ``RECURRENCE_MAX_SKIPPED`` dates have been skipped.

        Args:
            client_id: Client identifier
            first_start: Start of the first occurrence
            pattern: Recurrence rule
            duration_minutes: Length of each occurrence
            service_type: Type of massage
            price: Price per occurrence
            notes: Optional notes copied to every occurrence

        Returns:
            Created appointments, parent first

        Raises:
            UnsupportedRecurrenceError: Pattern frequency cannot be expanded
            ConflictError: The first occurrence conflicts
            UnavailableError: The first occurrence is outside working hours
        """
        ctx_logger = ContextLogger(logger, client_id=client_id)

        if not pattern.is_supported:
            ctx_logger.warning(f"Rejected recurrence with frequency {pattern.frequency.value}")
            raise UnsupportedRecurrenceError(
                f"Recurrence frequency '{pattern.frequency.value}' is not supported"
            )

        with self._lock:
            parent = self._new_appointment(client_id, first_start, duration_minutes, service_type, price, notes)
            parent.is_recurring = True
            parent.recurrence_pattern = pattern

            try:
                self._check_slot(parent.start_datetime, parent.duration_minutes)
            except (ConflictError, UnavailableError) as e:
                ctx_logger.warning(f"Series rejected, first occurrence unavailable: {e}")
                raise

            self._appointments[parent.id] = parent
            created = [parent]
            skipped: List[datetime] = []
            ceiling = pattern.occurrence_ceiling()
            consumed = 1

            for candidate in pattern.occurrences(parent.start_datetime):
                if self.count_skipped_occurrences:
                    if consumed >= ceiling:
                        break
                elif len(created) >= ceiling or len(skipped) >= RECURRENCE_MAX_SKIPPED:
                    break

                if pattern.is_past_end(candidate):
                    break

                consumed += 1

                if not self._is_bookable(candidate, parent.duration_minutes):
                    skipped.append(candidate)
                    continue

                child = self._new_appointment(
                    client_id, candidate, parent.duration_minutes, parent.service_type, parent.price, notes
                )
                child.is_recurring = True
                child.parent_appointment_id = parent.id
                self._appointments[child.id] = child
                created.append(child)

            self._persist()

        for when in skipped:
            ctx_logger.info(f"Skipped occurrence of series {parent.id} at {when.isoformat()}")
        ctx_logger.info(
            f"Created series {parent.id}: {len(created)} occurrences, {len(skipped)} skipped"
        )
        return [self._snapshot(apt) for apt in created]

    # Transitions

    def _require_active(self, appointment: Appointment, action: str):
        if not appointment.is_active:
            logger.warning(f"Cannot {action} appointment {appointment.id} in status {appointment.status.value}")
            raise InvalidStateError(
                f"Cannot {action} an appointment that is {appointment.status.value}",
                appointment_id=appointment.id
            )

    def _touch(self, appointment: Appointment) -> Appointment:
        appointment.updated_at = self._clock()
        self._persist()
        return self._snapshot(appointment)

    def confirm_appointment(self, appointment_id: str) -> Appointment:
        """
        Record the client's confirmation.

        A scheduled appointment moves to confirmed. An appointment already in
        progress keeps its status and only records the confirmation.

        Args:
            appointment_id: Appointment ID

        Returns:
            Updated appointment

        Raises:
            NotFoundError: Unknown appointment
            InvalidStateError: Appointment is completed, no-show or cancelled
        """
        with self._lock:
            appointment = self._get(appointment_id)
            self._require_active(appointment, 'confirm')

            if not appointment.is_confirmed:
                appointment.is_confirmed = True
                appointment.confirmed_at = self._clock()
            if appointment.status == AppointmentStatus.SCHEDULED:
                appointment.status = AppointmentStatus.CONFIRMED
            result = self._touch(appointment)

        logger.info(f"Appointment confirmed: {appointment_id}")
        return result

    def start_appointment(self, appointment_id: str) -> Appointment:
        """
        Mark an appointment as in progress.

        Repeated calls leave an in-progress appointment unchanged.

        Args:
            appointment_id: Appointment ID

        Returns:
            Updated appointment
        """
        with self._lock:
            appointment = self._get(appointment_id)
            self._require_active(appointment, 'start')

            if appointment.status == AppointmentStatus.IN_PROGRESS:
                return self._snapshot(appointment)

            appointment.status = AppointmentStatus.IN_PROGRESS
            result = self._touch(appointment)

        logger.info(f"Appointment started: {appointment_id}")
        return result

    def complete_appointment(self, appointment_id: str, client_showed_up: bool = True) -> Appointment:
        """
        Close an appointment as completed or no-show.

        Args:
            appointment_id: Appointment ID
            client_showed_up: False records a no-show

        Returns:
            Updated appointment
        """
        with self._lock:
            appointment = self._get(appointment_id)
            self._require_active(appointment, 'complete')

            appointment.client_showed_up = client_showed_up
            appointment.status = AppointmentStatus.COMPLETED if client_showed_up else AppointmentStatus.NO_SHOW
            result = self._touch(appointment)

        logger.info(f"Appointment {appointment_id} closed as {result.status.value}")
        return result

    def cancel_appointment(self, appointment_id: str, reason: Optional[str] = None) -> Appointment:
        """
        Cancel an appointment and free its time slot.

        Args:
            appointment_id: Appointment ID
            reason: Optional cancellation reason

        Returns:
            Cancelled appointment

        Raises:
            NotFoundError: Unknown appointment
            InvalidStateError: Appointment is already closed
        """
        with self._lock:
            appointment = self._get(appointment_id)
            if not appointment.can_be_cancelled:
                self._require_active(appointment, 'cancel')

            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancellation_reason = reason
            appointment.cancelled_at = self._clock()
            result = self._touch(appointment)

        logger.info(f"Appointment cancelled: {appointment_id}")
        return result

    def cancel_series(self, parent_id: str, reason: Optional[str] = None,
                      from_datetime: Optional[datetime] = None) -> List[Appointment]:
        """
        Cancel the active occurrences of a series starting at or after a time.

        Args:
            parent_id: Series parent ID
            reason: Cancellation reason recorded on each occurrence
            from_datetime: Earliest start to cancel (defaults to now)

        Returns:
            Cancelled occurrences
        """
        with self._lock:
            parent = self._get(parent_id)
            if not parent.is_series_parent:
                raise InvalidStateError(
                    f"Appointment {parent_id} is not the parent of a series", appointment_id=parent_id
                )

            cutoff = normalize_datetime(from_datetime) if from_datetime else self._clock()
            now = self._clock()
            cancelled = []
            for apt in self._appointments.values():
                if apt.id != parent_id and apt.parent_appointment_id != parent_id:
                    continue
                if not apt.can_be_cancelled or apt.start_datetime < cutoff:
                    continue
                apt.status = AppointmentStatus.CANCELLED
                apt.cancellation_reason = reason
                apt.cancelled_at = now
                apt.updated_at = now
                cancelled.append(apt)

            self._persist()
            result = self._sorted(cancelled)

        logger.info(f"Cancelled {len(result)} occurrences of series {parent_id}")
        return result

    def reschedule_appointment(self, appointment_id: str, new_start: datetime) -> Appointment:
        """
        Move an appointment to a new start time, keeping its duration.

        The reminder flag is cleared so a reminder goes out for the new time.

        Raises:
            NotFoundError: Unknown appointment
            InvalidStateError: Appointment is closed or has already started
            ConflictError: New time overlaps another active appointment
            UnavailableError: New time is outside working hours
        """
        new_start = normalize_datetime(new_start)
        with self._lock:
            appointment = self._get(appointment_id)
            self._require_active(appointment, 'reschedule')
            if not appointment.can_be_rescheduled(self._clock()):
                logger.warning(f"Cannot reschedule appointment {appointment_id}, it has already started")
                raise InvalidStateError(
                    "Cannot reschedule an appointment that has already started", appointment_id=appointment_id
                )

            try:
                self._check_slot(new_start, appointment.duration_minutes, exclude_id=appointment_id)
            except (ConflictError, UnavailableError) as e:
                logger.warning(f"Reschedule of {appointment_id} rejected: {e}")
                raise

            old_start = appointment.start_datetime
            appointment.start_datetime = new_start
            appointment.reminder_sent = False
            appointment.reminder_sent_at = None
            result = self._touch(appointment)

        logger.info(f"Appointment {appointment_id} moved from {old_start.isoformat()} to {new_start.isoformat()}")
        return result

    def mark_reminder_sent(self, appointment_id: str) -> Appointment:
        """
        Record that the reminder for an appointment went out.

        Args:
            appointment_id: Appointment ID

        Returns:
            Updated appointment
        """
        with self._lock:
            appointment = self._get(appointment_id)
            appointment.reminder_sent = True
            appointment.reminder_sent_at = self._clock()
            result = self._touch(appointment)

        logger.info(f"Reminder recorded for appointment {appointment_id}")
        return result

    def mark_paid(self, appointment_id: str, price: Optional[Decimal] = None) -> Appointment:
        """
        Record payment for an appointment.

        Args:
            appointment_id: Appointment ID
            price: Amount charged, replacing the booked price when given

        Returns:
            Updated appointment

        Raises:
            InvalidStateError: Appointment is cancelled
        """
        with self._lock:
            appointment = self._get(appointment_id)
            if appointment.status == AppointmentStatus.CANCELLED:
                raise InvalidStateError(
                    "Cannot record payment for a cancelled appointment", appointment_id=appointment_id
                )

            if price is not None:
                appointment.price = price
            appointment.is_paid = True
            result = self._touch(appointment)

        logger.info(f"Payment recorded for appointment {appointment_id}")
        return result
