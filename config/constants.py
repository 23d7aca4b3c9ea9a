"""Business constants for the massage practice scheduling system."""

# Service types
SERVICE_TYPES = [
    "swedish",
    "deep_tissue",
    "sports",
    "prenatal",
    "hot_stone",
    "aromatherapy",
    "therapeutic",
    "medical",
    "couples"
]

# Appointment durations (in minutes)
SERVICE_DURATIONS = {
    "swedish": 60,
    "deep_tissue": 60,
    "sports": 60,
    "prenatal": 60,
    "hot_stone": 75,
    "aromatherapy": 60,
    "therapeutic": 60,
    "medical": 45,
    "couples": 90
}

# List prices (USD)
SERVICE_PRICES = {
    "swedish": "90.00",
    "deep_tissue": "110.00",
    "sports": "105.00",
    "prenatal": "95.00",
    "hot_stone": "125.00",
    "aromatherapy": "100.00",
    "therapeutic": "100.00",
    "medical": "85.00",
    "couples": "180.00"
}

# Default working hours (24-hour format)
DEFAULT_WORKING_HOURS = {
    "monday": ("09:00", "17:00"),
    "tuesday": ("09:00", "17:00"),
    "wednesday": ("09:00", "17:00"),
    "thursday": ("09:00", "17:00"),
    "friday": ("09:00", "17:00"),
    "saturday": (None, None),  # Closed
    "sunday": (None, None)  # Closed
}

WEEKDAYS = [
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday"
]

# Recurrence safety ceilings
RECURRENCE_MAX_NEVER = 52  # one year of weekly occurrences
RECURRENCE_MAX_ON_DATE = 100
RECURRENCE_MAX_SKIPPED = 100  # candidates skipped before a series gives up

# Reminders
DEFAULT_REMINDER_LEAD_HOURS = 24

# Upcoming list size
DEFAULT_UPCOMING_LIMIT = 10
