"""Configuration settings for the massage practice scheduling system."""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration from environment variables."""

    # Twilio Configuration (reminder SMS)
    TWILIO_ACCOUNT_SID: str = os.getenv('TWILIO_ACCOUNT_SID', '')
    TWILIO_AUTH_TOKEN: str = os.getenv('TWILIO_AUTH_TOKEN', '')
    TWILIO_PHONE_NUMBER: str = os.getenv('TWILIO_PHONE_NUMBER', '')

    # Server Configuration
    PORT: int = int(os.getenv('PORT', '5000'))
    HOST: str = os.getenv('HOST', 'localhost')

    # Storage Configuration
    APPOINTMENTS_FILE: str = os.getenv('APPOINTMENTS_FILE', '')

    # Logging Configuration
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE: str = os.getenv('LOG_FILE', 'logs/app.log')

    # Business Rules
    REMINDER_LEAD_HOURS: int = int(os.getenv('REMINDER_LEAD_HOURS', '24'))
    SLOT_BUFFER_MINUTES: int = int(os.getenv('SLOT_BUFFER_MINUTES', '0'))
    RECURRENCE_COUNTS_SKIPPED: bool = _env_bool('RECURRENCE_COUNTS_SKIPPED', 'true')

    @classmethod
    def validate(cls) -> bool:
        """Validate that the configuration needed for SMS reminders is set."""
        required_fields = [
            'TWILIO_ACCOUNT_SID',
            'TWILIO_AUTH_TOKEN',
            'TWILIO_PHONE_NUMBER'
        ]

        missing = [field for field in required_fields if not getattr(cls, field, '')]

        if missing:
            print(f"WARNING: Missing reminder configuration: {', '.join(missing)}")
            return False

        return True

    @classmethod
    def to_dict(cls) -> dict:
        """Convert configuration to dictionary (excluding sensitive data)."""
        return {
            'PORT': cls.PORT,
            'APPOINTMENTS_FILE': cls.APPOINTMENTS_FILE,
            'LOG_LEVEL': cls.LOG_LEVEL,
            'REMINDER_LEAD_HOURS': cls.REMINDER_LEAD_HOURS,
            'SLOT_BUFFER_MINUTES': cls.SLOT_BUFFER_MINUTES,
            'RECURRENCE_COUNTS_SKIPPED': cls.RECURRENCE_COUNTS_SKIPPED,
        }


# Global config instance
config = Config()
