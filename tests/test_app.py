"""Tests for the HTTP routes."""

import pytest

from app import app


@pytest.fixture
def client(shared_scheduler):
    return app.test_client()


async def book(client, start='2026-03-02T10:00:00', client_id='client_1'):
    return await client.post('/appointments', json={
        'client_id': client_id,
        'start_datetime': start,
        'service_type': 'swedish'
    })


@pytest.mark.asyncio
async def test_book_and_fetch(client):
    response = await book(client)
    assert response.status_code == 201
    data = await response.get_json()
    apt_id = data['appointment']['id']

    response = await client.get(f'/appointments/{apt_id}')
    assert response.status_code == 200
    assert (await response.get_json())['appointment']['start_datetime'] == '2026-03-02T10:00:00'


@pytest.mark.asyncio
async def test_error_statuses(client):
    await book(client)

    assert (await book(client, client_id='client_2')).status_code == 409
    assert (await book(client, start='2026-03-07T10:00:00')).status_code == 409
    assert (await book(client, start='not a date')).status_code == 400
    assert (await client.get('/appointments/apt_missing')).status_code == 404


@pytest.mark.asyncio
async def test_transitions(client):
    apt_id = (await (await book(client)).get_json())['appointment']['id']

    response = await client.post(f'/appointments/{apt_id}/complete', json={'client_showed_up': False})
    assert response.status_code == 200
    assert (await response.get_json())['appointment']['status'] == 'no_show'

    response = await client.post(f'/appointments/{apt_id}/reschedule', json={'start_datetime': '2026-03-02T14:00:00'})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_series_routes(client):
    response = await client.post('/series', json={
        'client_id': 'client_1',
        'start_datetime': '2026-03-02T10:00:00',
        'service_type': 'swedish',
        'frequency': 'biweekly',
        'end_type': 'after_occurrences',
        'occurrence_count': 3
    })
    assert response.status_code == 201
    data = await response.get_json()
    assert data['count'] == 3

    custom = await client.post('/series', json={
        'client_id': 'client_1',
        'start_datetime': '2026-03-03T10:00:00',
        'service_type': 'swedish',
        'frequency': 'custom'
    })
    assert custom.status_code == 422

    response = await client.post(f"/series/{data['series_id']}/cancel", json={'reason': 'Schedule change'})
    assert response.status_code == 200
    assert (await response.get_json())['count'] == 3


@pytest.mark.asyncio
async def test_queries(client):
    await book(client)

    slots = await client.get('/slots?date=2026-03-02&service_type=swedish')
    assert slots.status_code == 200
    assert '2026-03-02T10:00:00' not in (await slots.get_json())['slots']

    conflicts = await client.get('/conflicts?start=2026-03-02T10:15:00&duration=30')
    assert (await conflicts.get_json())['has_conflict'] is True

    listed = await client.get('/appointments?date=2026-03-02')
    assert (await listed.get_json())['count'] == 1

    stats = await client.get('/statistics?start=2026-03-01&end=2026-03-31')
    assert (await stats.get_json())['statistics']['total_appointments'] == 1

    health = await client.get('/health')
    assert await health.get_json() == {'status': 'healthy', 'unsaved_changes': False}


@pytest.mark.asyncio
async def test_bad_json_values_are_client_errors(client):
    response = await client.post('/series', json={
        'client_id': 'client_1',
        'start_datetime': '2026-03-02T10:00:00',
        'service_type': 'swedish',
        'frequency': 'weekly',
        'interval': None
    })
    assert response.status_code == 400

    response = await book(client, start='2026-03-07T10:00:00Z')
    assert response.status_code == 409
