"""Input validation utilities."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from config.constants import SERVICE_TYPES


def validate_phone_number(phone: str) -> bool:
    """
    Validate phone number format.

    Args:
        phone: Phone number string

    Returns:
        True if valid, False otherwise
    """
    if not phone:
        return False

    # Remove common formatting characters
    cleaned = re.sub(r'[\s\-\(\)\.]+', '', phone)

    # Check for valid E.164 format or 10-digit US number
    pattern = r'^\+?1?\d{10,15}$'
    return bool(re.match(pattern, cleaned))


def normalize_phone_number(phone: str) -> str:
    """
    Normalize phone number to E.164 format.

    Args:
        phone: Phone number string

    Returns:
        Normalized phone number
    """
    cleaned = re.sub(r'[\s\-\(\)\.]+', '', phone)

    # Add +1 for US numbers if not present
    if not cleaned.startswith('+'):
        if not cleaned.startswith('1'):
            cleaned = '1' + cleaned
        cleaned = '+' + cleaned

    return cleaned


def validate_service_type(service_type: str) -> bool:
    """
    Validate service type.

    Args:
        service_type: Service type string

    Returns:
        True if valid, False otherwise
    """
    return bool(service_type) and service_type.lower() in SERVICE_TYPES


def normalize_datetime(value: datetime) -> datetime:
    """
    Convert an offset-aware datetime to naive local time.

    Appointments are stored as naive local times; naive input is returned unchanged.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def validate_datetime(dt_str: str) -> Optional[datetime]:
    """
    Validate and parse datetime string.

    Args:
        dt_str: Datetime string (ISO format)

    Returns:
        Parsed datetime object or None if invalid
    """
    try:
        return normalize_datetime(datetime.fromisoformat(dt_str.replace('Z', '+00:00')))
    except (ValueError, AttributeError):
        return None


def validate_date(date_str: str) -> Optional[date]:
    """
    Validate and parse date string.

    Args:
        date_str: Date string (YYYY-MM-DD format)

    Returns:
        Parsed date or None if invalid
    """
    try:
        return datetime.strptime(date_str, '%Y-%m-%d').date()
    except (ValueError, TypeError):
        return None


def validate_duration(value: Any) -> Optional[int]:
    """Parse a positive whole number of minutes, or None."""
    try:
        minutes = int(value)
    except (ValueError, TypeError):
        return None
    return minutes if minutes > 0 else None


def parse_price(value: Any) -> Optional[Decimal]:
    """Parse a non-negative monetary amount, or None."""
    if value is None or value == '':
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        return None
    return price if price.is_finite() and price >= 0 else None


def sanitize_input(text: str, max_length: int = 1000) -> str:
    """
    Sanitize free-text input such as notes and cancellation reasons.

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    # Truncate to max length
    sanitized = text[:max_length]

    # Remove potentially harmful characters
    sanitized = re.sub(r'[<>]', '', sanitized)

    return sanitized.strip()
