"""SMS reminder delivery."""

import inspect
from typing import Awaitable, Callable, Dict, Optional, Union
from twilio.rest import Client
from config.settings import config
from models.appointment import Appointment
from models.errors import SchedulingError
from services.appointment_scheduler import AppointmentScheduler
from utils.logger import setup_logger, ContextLogger
from utils.validators import normalize_phone_number, validate_phone_number

logger = setup_logger(__name__)

PhoneLookup = Callable[[str], Union[Optional[str], Awaitable[Optional[str]]]]


class NotificationService:
    """Service for sending reminder SMS through Twilio."""

    def __init__(self, twilio_client: Optional[Client] = None, from_number: Optional[str] = None):
        """
        Initialize Twilio client.

        Args:
            twilio_client: Pre-built client (tests); built from config when omitted
            from_number: Sending number; defaults to config.TWILIO_PHONE_NUMBER
        """
        self.from_number = from_number or config.TWILIO_PHONE_NUMBER
        self.twilio_client = twilio_client

        if self.twilio_client is None and config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN:
            try:
                self.twilio_client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)
            except Exception as e:
                logger.error(f"Failed to initialize Twilio client: {e}")
                self.twilio_client = None

    @property
    def enabled(self) -> bool:
        return self.twilio_client is not None and bool(self.from_number)

    def send_sms(self, phone: str, body: str) -> bool:
        """
        Send one SMS.

        Args:
            phone: Recipient phone number
            body: Message text

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("Twilio client not initialized, skipping SMS")
            return False

        if not validate_phone_number(phone):
            logger.warning(f"Invalid phone number, skipping SMS: {phone}")
            return False

        try:
            message = self.twilio_client.messages.create(
                body=body,
                from_=self.from_number,
                to=normalize_phone_number(phone)
            )
            logger.info(f"SMS sent to {phone}: {message.sid}")
            return True

        except Exception as e:
            logger.error(f"Error sending SMS: {e}")
            return False


def build_reminder_message(appointment: Appointment) -> str:
    """Short reminder SMS body."""
    day = appointment.start_datetime.strftime('%a, %b %d')
    return (
        f"Reminder: {appointment.service_type.display_name} massage on {day}, "
        f"{appointment.time_range_display} ({appointment.duration_minutes} min). "
        f"Reply YES to confirm."
    )


async def process_reminders(
    scheduler: AppointmentScheduler,
    phone_lookup: PhoneLookup,
    notifier: Optional[NotificationService] = None
) -> Dict[str, int]:
    """
    Send reminders for every appointment that is due one.

    Successful deliveries are recorded on the scheduler; failures leave
    the appointment flagged for the next run.

    Args:
        scheduler: Scheduler holding the appointments
        phone_lookup: Maps a client id to a phone number (sync or async)
        notifier: Delivery service (defaults to a config-built one)

    Returns:
        Counts of sent, failed and skipped reminders
    """
    notifier = notifier or NotificationService()
    summary = {'sent': 0, 'failed': 0, 'skipped': 0}

    for appointment in scheduler.appointments_needing_reminders():
        ctx_logger = ContextLogger(logger, appointment_id=appointment.id, client_id=appointment.client_id)

        phone = phone_lookup(appointment.client_id)
        if inspect.isawaitable(phone):
            phone = await phone

        if not phone:
            ctx_logger.warning("No phone number on file, reminder skipped")
            summary['skipped'] += 1
            continue

        if not notifier.send_sms(phone, build_reminder_message(appointment)):
            summary['failed'] += 1
            continue

        try:
            scheduler.mark_reminder_sent(appointment.id)
        except SchedulingError as e:
            ctx_logger.warning(f"Reminder sent but not recorded: {e}")
            summary['failed'] += 1
            continue

        summary['sent'] += 1

    logger.info(
        f"Reminder run finished: {summary['sent']} sent, {summary['failed']} failed, {summary['skipped']} skipped"
    )
    return summary
