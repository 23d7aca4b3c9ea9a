"""Tests for weekly availability."""

from datetime import date, datetime, time

import pytest

from models.schedule import TimeOffPeriod, TimeOffType, WeeklyAvailability, WorkingHours

MONDAY = date(2026, 3, 2)
SATURDAY = date(2026, 3, 7)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


class TestWorkingHours:
    """Construction checks."""

    def test_start_must_precede_end(self):
        with pytest.raises(ValueError):
            WorkingHours(start=time(17), end=time(9))

    def test_break_must_fit_inside_window(self):
        with pytest.raises(ValueError):
            WorkingHours(start=time(9), end=time(17), break_start=time(8), break_end=time(9, 30))

    def test_break_needs_both_ends(self):
        with pytest.raises(ValueError):
            WorkingHours(break_start=time(12))

    def test_total_minutes_excludes_break(self):
        hours = WorkingHours(break_start=time(12), break_end=time(13))
        assert hours.total_minutes == 7 * 60
        assert WorkingHours.closed().total_minutes == 0


class TestIsAvailable:
    """Single interval checks."""

    def test_default_week(self):
        availability = WeeklyAvailability.default()
        assert availability.is_available(at(MONDAY, 9), 60) is True
        assert availability.is_available(at(SATURDAY, 10), 60) is False

    def test_must_end_inside_window(self):
        availability = WeeklyAvailability.default()
        assert availability.is_available(at(MONDAY, 16), 60) is True
        assert availability.is_available(at(MONDAY, 16, 30), 60) is False
        assert availability.is_available(at(MONDAY, 8, 30), 60) is False

    def test_break_blocks_overlapping_appointments(self):
        availability = WeeklyAvailability.default().with_weekday(
            0, WorkingHours(break_start=time(12), break_end=time(13))
        )
        assert availability.is_available(at(MONDAY, 11, 30), 60) is False
        assert availability.is_available(at(MONDAY, 11), 60) is True
        assert availability.is_available(at(MONDAY, 13), 60) is True

    def test_date_override_supersedes_weekday(self):
        availability = WeeklyAvailability.default().with_closure(MONDAY)
        assert availability.is_available(at(MONDAY, 10), 60) is False
        assert availability.is_available(at(date(2026, 3, 9), 10), 60) is True

    def test_override_can_open_a_closed_day(self):
        availability = WeeklyAvailability.default().with_override(
            SATURDAY, WorkingHours.from_strings('10:00', '14:00')
        )
        assert availability.is_available(at(SATURDAY, 10), 60) is True
        assert availability.is_available(at(SATURDAY, 13, 30), 60) is False

    def test_time_off_closes_every_day_in_range(self):
        availability = WeeklyAvailability.default().with_time_off(
            TimeOffPeriod(date(2026, 3, 2), date(2026, 3, 4), TimeOffType.VACATION)
        )
        assert availability.works_on(date(2026, 3, 3)) is False
        assert availability.works_on(date(2026, 3, 5)) is True

    def test_time_off_length_counts_both_ends(self):
        period = TimeOffPeriod(date(2026, 3, 2), date(2026, 3, 4), TimeOffType.SICK)
        assert period.duration_in_days == 3
        assert period.to_dict()['duration_in_days'] == 3
        assert TimeOffPeriod(date(2026, 3, 2), date(2026, 3, 2)).duration_in_days == 1

    def test_snapshot_is_not_modified_by_with_helpers(self):
        base = WeeklyAvailability.default()
        base.with_closure(MONDAY)
        assert base.works_on(MONDAY) is True


class TestAvailableSlots:
    """Slot enumeration."""

    def test_back_to_back_slots(self):
        slots = WeeklyAvailability.default().available_slots(MONDAY, 60)
        assert slots == [at(MONDAY, hour) for hour in range(9, 17)]

    def test_slots_skip_break(self):
        availability = WeeklyAvailability.default().with_weekday(
            0, WorkingHours(break_start=time(12), break_end=time(13))
        )
        slots = availability.available_slots(MONDAY, 60)
        assert at(MONDAY, 12) not in slots
        assert at(MONDAY, 13) in slots

    def test_buffer_widens_step(self):
        slots = WeeklyAvailability.default(buffer_minutes=30).available_slots(MONDAY, 60)
        assert slots[:3] == [at(MONDAY, 9), at(MONDAY, 10, 30), at(MONDAY, 12)]

    def test_duration_that_does_not_fit_is_dropped(self):
        slots = WeeklyAvailability.default().available_slots(MONDAY, 90)
        assert slots[-1] == at(MONDAY, 15)

    def test_closed_day_has_no_slots(self):
        assert WeeklyAvailability.default().available_slots(SATURDAY, 60) == []


def test_dict_round_trip_keeps_overrides_and_time_off():
    availability = (
        WeeklyAvailability.default(buffer_minutes=15)
        .with_weekday(2, WorkingHours(break_start=time(12), break_end=time(12, 30)))
        .with_closure(date(2026, 12, 25))
        .with_time_off(TimeOffPeriod(date(2026, 8, 3), date(2026, 8, 7), reason='Conference'))
    )
    restored = WeeklyAvailability.from_dict(availability.to_dict())
    assert restored.hours_for(date(2026, 3, 4)) == availability.hours_for(date(2026, 3, 4))
    assert restored.works_on(date(2026, 12, 25)) is False
    assert restored.works_on(date(2026, 8, 5)) is False
    assert restored.buffer_minutes == 15
