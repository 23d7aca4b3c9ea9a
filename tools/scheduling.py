"""Appointment scheduling operations."""

import functools
from datetime import datetime, time
from typing import Any, Dict, Optional
from config.constants import DEFAULT_UPCOMING_LIMIT
from config.settings import config
from models.appointment import ServiceType
from models.errors import SchedulingError
from models.recurrence import RecurrenceEndType, RecurrenceFrequency, RecurrencePattern
from models.schedule import WeeklyAvailability
from services.appointment_scheduler import AppointmentScheduler
from services.storage import InMemoryAppointmentStore, JsonFileAppointmentStore
from utils.logger import setup_logger
from utils.validators import (
    parse_price,
    sanitize_input,
    validate_date,
    validate_datetime,
    validate_duration,
    validate_service_type,
)

logger = setup_logger(__name__)

INVALID_INPUT = 'invalid_input'

_scheduler: Optional[AppointmentScheduler] = None


def build_scheduler() -> AppointmentScheduler:
    """Create a scheduler from the application configuration."""
    if config.APPOINTMENTS_FILE:
        store = JsonFileAppointmentStore(config.APPOINTMENTS_FILE)
    else:
        store = InMemoryAppointmentStore()

    return AppointmentScheduler(
        availability=WeeklyAvailability.default(buffer_minutes=config.SLOT_BUFFER_MINUTES),
        store=store,
        lead_hours=config.REMINDER_LEAD_HOURS,
        count_skipped_occurrences=config.RECURRENCE_COUNTS_SKIPPED
    )


def get_scheduler() -> AppointmentScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = build_scheduler()
    return _scheduler


def set_scheduler(scheduler: Optional[AppointmentScheduler]):
    """Replace the shared scheduler (None resets to a config-built one on next use)."""
    global _scheduler
    _scheduler = scheduler


def _invalid(message: str) -> Dict[str, Any]:
    logger.info(f"Rejected input: {message}")
    return {
        'success': False,
        'error': message,
        'error_code': INVALID_INPUT
    }


def scheduling_result(func):
    """Turn scheduling errors raised by ``func`` into result dictionaries."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SchedulingError as e:
            return e.to_dict()
        except ValueError as e:
            return _invalid(str(e))

    return wrapper


def _service_type(value: Optional[str]) -> Optional[ServiceType]:
    if not isinstance(value, str) or not validate_service_type(value):
        return None
    return ServiceType(value.lower())


def _text(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return sanitize_input(value) or None


def _duration(value: Any, service_type: Optional[ServiceType]) -> Optional[int]:
    if value is None or value == '':
        return service_type.default_duration if service_type else None
    return validate_duration(value)


@scheduling_result
async def check_availability(
    preferred_date: str,
    service_type: Optional[str] = None,
    duration_minutes: Optional[Any] = None
) -> Dict:
    """
    Check available appointment slots.

    Args:
        preferred_date: Preferred date (YYYY-MM-DD)
        service_type: Optional type of service (sets the default duration)
        duration_minutes: Optional explicit duration

    Returns:
        Dictionary with available slots
    """
    day = validate_date(preferred_date)
    if day is None:
        return _invalid(f"Invalid date: {preferred_date}")

    service = _service_type(service_type) if service_type else None
    if service_type and service is None:
        return _invalid(f"Unknown service type: {service_type}")

    duration = _duration(duration_minutes, service or ServiceType.SWEDISH)
    if duration is None:
        return _invalid(f"Invalid duration: {duration_minutes}")

    logger.info(f"Checking availability for {duration} minutes on {preferred_date}")
    slots = get_scheduler().available_time_slots(day, duration)
    logger.info(f"Found {len(slots)} available slots")

    return {
        'success': True,
        'available': len(slots) > 0,
        'date': day.isoformat(),
        'duration_minutes': duration,
        'slots': [slot.isoformat() for slot in slots]
    }


@scheduling_result
async def check_conflict(
    datetime_str: str,
    duration_minutes: Any,
    exclude_id: Optional[str] = None
) -> Dict:
    """
    Report whether a time range collides with an active appointment.

    Args:
        datetime_str: Start of the range (ISO format)
        duration_minutes: Length of the range
        exclude_id: Optional appointment to ignore

    Returns:
        Dictionary with the conflict flag and conflicting ids
    """
    start = validate_datetime(datetime_str)
    if start is None:
        return _invalid(f"Invalid datetime: {datetime_str}")

    duration = validate_duration(duration_minutes)
    if duration is None:
        return _invalid(f"Invalid duration: {duration_minutes}")

    conflicts = get_scheduler().find_conflicts(start, duration, exclude_id)
    return {
        'success': True,
        'has_conflict': bool(conflicts),
        'conflicting_ids': [apt.id for apt in conflicts]
    }


@scheduling_result
async def schedule_appointment(
    client_id: str,
    datetime_str: str,
    service_type: str,
    duration_minutes: Optional[Any] = None,
    price: Optional[Any] = None,
    notes: Optional[str] = None
) -> Dict:
    """
    Schedule a new appointment.

    Args:
        client_id: Client ID
        datetime_str: Appointment datetime (ISO format)
        service_type: Type of service
        duration_minutes: Optional duration (defaults to the service's)
        price: Optional price (defaults to the service's list price)
        notes: Optional notes

    Returns:
        Dictionary with appointment details
    """
    if not client_id:
        return _invalid("client_id is required")

    start = validate_datetime(datetime_str)
    if start is None:
        return _invalid(f"Invalid datetime: {datetime_str}")

    service = _service_type(service_type)
    if service is None:
        return _invalid(f"Unknown service type: {service_type}")

    duration = _duration(duration_minutes, service)
    if duration is None:
        return _invalid(f"Invalid duration: {duration_minutes}")

    amount = parse_price(price)
    if price not in (None, '') and amount is None:
        return _invalid(f"Invalid price: {price}")

    appointment = get_scheduler().book_appointment(
        client_id=client_id,
        start=start,
        duration_minutes=duration,
        service_type=service,
        price=amount,
        notes=_text(notes)
    )

    formatted_date = appointment.start_datetime.strftime('%A, %B %d')
    formatted_time = appointment.start_datetime.strftime('%I:%M %p')

    return {
        'success': True,
        'appointment': appointment.to_dict(),
        'confirmation': f"Scheduled {service.display_name} for {formatted_date} at {formatted_time}"
    }


@scheduling_result
async def schedule_recurring_appointments(
    client_id: str,
    datetime_str: str,
    service_type: str,
    frequency: str,
    interval: Any = 1,
    end_type: str = RecurrenceEndType.NEVER.value,
    occurrence_count: Optional[Any] = None,
    end_date: Optional[str] = None,
    duration_minutes: Optional[Any] = None,
    price: Optional[Any] = None,
    notes: Optional[str] = None
) -> Dict:
    """
    Schedule a recurring series.

    Returns:
        Dictionary with the created occurrences, parent first
    """
    if not client_id:
        return _invalid("client_id is required")

    start = validate_datetime(datetime_str)
    if start is None:
        return _invalid(f"Invalid datetime: {datetime_str}")

    service = _service_type(service_type)
    if service is None:
        return _invalid(f"Unknown service type: {service_type}")

    duration = _duration(duration_minutes, service)
    if duration is None:
        return _invalid(f"Invalid duration: {duration_minutes}")

    try:
        freq = RecurrenceFrequency(str(frequency or '').lower())
        ending = RecurrenceEndType(str(end_type or '').lower())
    except ValueError:
        return _invalid(f"Invalid recurrence: frequency={frequency} end_type={end_type}")

    every = validate_duration(interval)
    if every is None:
        return _invalid(f"Invalid recurrence interval: {interval}")

    count = None
    if occurrence_count not in (None, ''):
        count = validate_duration(occurrence_count)
        if count is None:
            return _invalid(f"Invalid occurrence count: {occurrence_count}")

    until = None
    if end_date:
        until = validate_date(end_date) or validate_datetime(end_date)
        if until is None:
            return _invalid(f"Invalid end date: {end_date}")

    amount = parse_price(price)
    if price not in (None, '') and amount is None:
        return _invalid(f"Invalid price: {price}")

    pattern = RecurrencePattern(
        frequency=freq,
        interval=every,
        end_type=ending,
        occurrence_count=count,
        end_date=until
    )

    created = get_scheduler().create_recurring_series(
        client_id=client_id,
        first_start=start,
        pattern=pattern,
        duration_minutes=duration,
        service_type=service,
        price=amount,
        notes=_text(notes)
    )

    return {
        'success': True,
        'series_id': created[0].id,
        'count': len(created),
        'appointments': [apt.to_dict() for apt in created]
    }


@scheduling_result
async def cancel_appointment(
    appointment_id: str,
    reason: Optional[str] = None
) -> Dict:
    """
    Cancel an appointment.

    Args:
        appointment_id: Appointment ID
        reason: Optional cancellation reason

    Returns:
        Dictionary with cancellation result
    """
    logger.info(f"Cancelling appointment: {appointment_id}")
    appointment = get_scheduler().cancel_appointment(
        appointment_id, _text(reason)
    )

    return {
        'success': True,
        'appointment': appointment.to_dict(),
        'message': 'Appointment cancelled successfully'
    }


@scheduling_result
async def cancel_series(
    parent_id: str,
    reason: Optional[str] = None
) -> Dict:
    """
    Cancel the remaining occurrences of a recurring series.

    Args:
        parent_id: Series parent ID
        reason: Optional cancellation reason

    Returns:
        Dictionary with the cancelled occurrences
    """
    cancelled = get_scheduler().cancel_series(parent_id, _text(reason))
    return {
        'success': True,
        'count': len(cancelled),
        'appointments': [apt.to_dict() for apt in cancelled]
    }


@scheduling_result
async def reschedule_appointment(appointment_id: str, new_datetime_str: str) -> Dict:
    """
    Move an appointment to a new start time.

    Args:
        appointment_id: Appointment ID
        new_datetime_str: New start (ISO format)

    Returns:
        Dictionary with the updated appointment
    """
    new_start = validate_datetime(new_datetime_str)
    if new_start is None:
        return _invalid(f"Invalid datetime: {new_datetime_str}")

    appointment = get_scheduler().reschedule_appointment(appointment_id, new_start)
    return {
        'success': True,
        'appointment': appointment.to_dict()
    }


@scheduling_result
async def confirm_appointment(appointment_id: str) -> Dict:
    """
    Confirm an appointment.

    Args:
        appointment_id: Appointment ID

    Returns:
        Dictionary with the updated appointment
    """
    appointment = get_scheduler().confirm_appointment(appointment_id)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def start_appointment(appointment_id: str) -> Dict:
    """
    Mark an appointment as in progress.

    Args:
        appointment_id: Appointment ID

    Returns:
        Dictionary with the updated appointment
    """
    appointment = get_scheduler().start_appointment(appointment_id)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def complete_appointment(appointment_id: str, client_showed_up: bool = True) -> Dict:
    """
    Close an appointment.

    Args:
        appointment_id: Appointment ID
        client_showed_up: False records a no-show

    Returns:
        Dictionary with the updated appointment
    """
    appointment = get_scheduler().complete_appointment(appointment_id, client_showed_up=client_showed_up)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def record_payment(appointment_id: str, price: Optional[Any] = None) -> Dict:
    """
    Record payment for an appointment.

    Args:
        appointment_id: Appointment ID
        price: Optional amount charged (keeps the booked price when omitted)

    Returns:
        Dictionary with the updated appointment
    """
    amount = parse_price(price)
    if price not in (None, '') and amount is None:
        return _invalid(f"Invalid price: {price}")

    appointment = get_scheduler().mark_paid(appointment_id, amount)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def mark_reminder_sent(appointment_id: str) -> Dict:
    """
    Record that a reminder was sent.

    Args:
        appointment_id: Appointment ID

    Returns:
        Dictionary with the updated appointment
    """
    appointment = get_scheduler().mark_reminder_sent(appointment_id)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def get_appointment(appointment_id: str) -> Dict:
    """
    Get appointment details.

    Args:
        appointment_id: Appointment ID

    Returns:
        Dictionary with the appointment
    """
    appointment = get_scheduler().get_appointment(appointment_id)
    return {'success': True, 'appointment': appointment.to_dict()}


@scheduling_result
async def get_appointments(
    date_str: Optional[str] = None,
    start_str: Optional[str] = None,
    end_str: Optional[str] = None,
    client_id: Optional[str] = None
) -> Dict:
    """
    List appointments by day, by range, or by client.

    Args:
        date_str: Date (YYYY-MM-DD) or "today"
        start_str: Range start (date or datetime)
        end_str: Range end (date or datetime)
        client_id: Optional client filter

    Returns:
        Dictionary with appointments sorted by start time
    """
    scheduler = get_scheduler()

    if date_str == 'today':
        appointments = scheduler.todays_appointments()
    elif date_str:
        day = validate_date(date_str)
        if day is None:
            return _invalid(f"Invalid date: {date_str}")
        appointments = scheduler.appointments_on(day)
    elif start_str or end_str:
        start = _range_bound(start_str, time.min)
        end = _range_bound(end_str, time.max)
        if start is None or end is None:
            return _invalid(f"Invalid range: {start_str} - {end_str}")
        appointments = scheduler.appointments_between(start, end)
    elif client_id:
        appointments = scheduler.appointments_for_client(client_id)
    else:
        appointments = scheduler.all_appointments()

    if client_id:
        appointments = [apt for apt in appointments if apt.client_id == client_id]

    return {
        'success': True,
        'count': len(appointments),
        'appointments': [apt.to_dict() for apt in appointments]
    }


@scheduling_result
async def get_upcoming_appointments(limit: Any = DEFAULT_UPCOMING_LIMIT) -> Dict:
    """Get the next active appointments."""
    count = validate_duration(limit)
    if count is None:
        return _invalid(f"Invalid limit: {limit}")

    upcoming = get_scheduler().upcoming_appointments(count)
    return {
        'success': True,
        'appointments': [apt.to_dict() for apt in upcoming]
    }


@scheduling_result
async def get_statistics(start_str: str, end_str: str) -> Dict:
    """Aggregate statistics for appointments starting within a range."""
    start = _range_bound(start_str, time.min)
    end = _range_bound(end_str, time.max)
    if start is None or end is None:
        return _invalid(f"Invalid range: {start_str} - {end_str}")

    stats = get_scheduler().statistics(start, end)
    return {
        'success': True,
        'statistics': stats.to_dict()
    }


def _range_bound(value: Optional[str], default_time: time) -> Optional[datetime]:
    """Parse a date or datetime; bare dates take ``default_time``."""
    if not value:
        return None
    day = validate_date(value)
    if day is not None:
        return datetime.combine(day, default_time)
    return validate_datetime(value)
