"""Tests for appointment stores."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal

from models.appointment import AppointmentStatus
from models.recurrence import RecurrenceFrequency, RecurrencePattern
from services.appointment_scheduler import AppointmentScheduler
from services.storage import InMemoryAppointmentStore, JsonFileAppointmentStore
from conftest import MONDAY, at, fixed_clock


def test_missing_file_loads_empty(tmp_path):
    store = JsonFileAppointmentStore(str(tmp_path / 'missing.json'))
    assert store.load_all() == []


def test_json_store_round_trip(tmp_path):
    path = tmp_path / 'data' / 'appointments.json'
    scheduler = AppointmentScheduler(store=JsonFileAppointmentStore(str(path)), clock=fixed_clock)

    single = scheduler.book_appointment('client_1', at(MONDAY, 9), 60, price=Decimal('95.50'), notes='Neck')
    scheduler.confirm_appointment(single.id)
    pattern = RecurrencePattern.until(RecurrenceFrequency.WEEKLY, date(2026, 3, 16))
    series = scheduler.create_recurring_series('client_2', at(MONDAY, 11), pattern, 90)

    reloaded = AppointmentScheduler(store=JsonFileAppointmentStore(str(path)), clock=fixed_clock)

    assert reloaded.all_appointments() == scheduler.all_appointments()
    assert reloaded.get_appointment(single.id).status == AppointmentStatus.CONFIRMED
    assert reloaded.get_appointment(single.id).price == Decimal('95.50')
    assert reloaded.series_pattern(series[-1].id) == pattern


def test_json_file_contents(tmp_path):
    path = tmp_path / 'appointments.json'
    scheduler = AppointmentScheduler(store=JsonFileAppointmentStore(str(path)), clock=fixed_clock)
    appointment = scheduler.book_appointment('client_1', at(MONDAY, 9), 60)

    records = json.loads(path.read_text(encoding='utf-8'))

    assert [record['id'] for record in records] == [appointment.id]
    assert records[0]['start_datetime'] == '2026-03-02T09:00:00'
    assert records[0]['end_datetime'] == '2026-03-02T10:00:00'
    assert list(tmp_path.glob('*.tmp')) == []


def test_in_memory_store_keeps_snapshots():
    store = InMemoryAppointmentStore()
    scheduler = AppointmentScheduler(store=store, clock=fixed_clock)
    appointment = scheduler.book_appointment('client_1', at(MONDAY, 9), 60)

    loaded = store.load_all()
    loaded[0].notes = 'changed'

    assert store.load_all()[0].notes is None
    assert loaded[0].id == appointment.id


def test_offset_timestamps_load_as_local_time(tmp_path):
    path = tmp_path / 'appointments.json'
    AppointmentScheduler(store=JsonFileAppointmentStore(str(path)), clock=fixed_clock).book_appointment(
        'client_1', at(MONDAY, 9), 60
    )
    records = json.loads(path.read_text(encoding='utf-8'))
    records[0]['start_datetime'] = '2026-03-04T09:00:00Z'
    path.write_text(json.dumps(records), encoding='utf-8')

    reloaded = AppointmentScheduler(store=JsonFileAppointmentStore(str(path)), clock=fixed_clock)
    stored = reloaded.all_appointments()[0]

    expected = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert stored.start_datetime == expected
    assert reloaded.book_appointment('client_2', datetime(2026, 3, 6, 9, 0), 60).start_datetime.tzinfo is None
