"""Shared fixtures for scheduler tests."""

import os

# Keep tests off the file system before config is imported
os.environ['LOG_FILE'] = ''
os.environ['APPOINTMENTS_FILE'] = ''

from datetime import datetime

import pytest

from models.schedule import WeeklyAvailability
from services.appointment_scheduler import AppointmentScheduler
from tools import scheduling

# Sunday morning; 2026-03-02 is the following Monday
NOW = datetime(2026, 3, 1, 8, 0)
MONDAY = datetime(2026, 3, 2)


def at(day: datetime, hour: int, minute: int = 0) -> datetime:
    return day.replace(hour=hour, minute=minute)


def fixed_clock():
    return NOW


@pytest.fixture
def scheduler():
    """Scheduler with no working-hours restriction."""
    return AppointmentScheduler(clock=fixed_clock)


@pytest.fixture
def office_scheduler():
    """Scheduler restricted to Monday-Friday 9am-5pm."""
    return AppointmentScheduler(availability=WeeklyAvailability.default(), clock=fixed_clock)


@pytest.fixture
def shared_scheduler(office_scheduler):
    """Install a scheduler behind the tool layer for the duration of a test."""
    scheduling.set_scheduler(office_scheduler)
    yield office_scheduler
    scheduling.set_scheduler(None)
