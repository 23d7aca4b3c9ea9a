"""
Main Application

Async web app (Quart) exposing the appointment scheduler:
1. Booking, rescheduling and status transitions
2. Recurring series
3. Slot search, conflict checks and statistics
"""

from quart import Quart, request
from config.settings import config
from tools import scheduling
from utils.logger import setup_logger

logger = setup_logger(__name__)

# Initialize Quart
app = Quart(__name__)

ERROR_STATUS = {
    'conflict': 409,
    'unavailable': 409,
    'not_found': 404,
    'invalid_state': 422,
    'unsupported_recurrence': 422,
    'invalid_input': 400,
}


def respond(result: dict, success_status: int = 200):
    """Attach the HTTP status matching a tool result."""
    if result.get('success'):
        return result, success_status
    return result, ERROR_STATUS.get(result.get('error_code'), 400)


async def _json() -> dict:
    data = await request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _flag(value, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes')


@app.route('/appointments', methods=['POST'])
async def book_appointment():
    """Book a single appointment."""
    data = await _json()
    result = await scheduling.schedule_appointment(
        client_id=data.get('client_id'),
        datetime_str=data.get('start_datetime', ''),
        service_type=data.get('service_type', ''),
        duration_minutes=data.get('duration_minutes'),
        price=data.get('price'),
        notes=data.get('notes')
    )
    return respond(result, 201)


@app.route('/appointments', methods=['GET'])
async def list_appointments():
    """List appointments on a date, in a range, or for a client."""
    result = await scheduling.get_appointments(
        date_str=request.args.get('date'),
        start_str=request.args.get('start'),
        end_str=request.args.get('end'),
        client_id=request.args.get('client_id')
    )
    return respond(result)


@app.route('/appointments/upcoming', methods=['GET'])
async def upcoming_appointments():
    result = await scheduling.get_upcoming_appointments(request.args.get('limit', '10'))
    return respond(result)


@app.route('/appointments/<appointment_id>', methods=['GET'])
async def get_appointment(appointment_id):
    return respond(await scheduling.get_appointment(appointment_id))


@app.route('/appointments/<appointment_id>/confirm', methods=['POST'])
async def confirm_appointment(appointment_id):
    return respond(await scheduling.confirm_appointment(appointment_id))


@app.route('/appointments/<appointment_id>/start', methods=['POST'])
async def start_appointment(appointment_id):
    return respond(await scheduling.start_appointment(appointment_id))


@app.route('/appointments/<appointment_id>/complete', methods=['POST'])
async def complete_appointment(appointment_id):
    data = await _json()
    result = await scheduling.complete_appointment(
        appointment_id, client_showed_up=_flag(data.get('client_showed_up'))
    )
    return respond(result)


@app.route('/appointments/<appointment_id>/cancel', methods=['POST'])
async def cancel_appointment(appointment_id):
    data = await _json()
    return respond(await scheduling.cancel_appointment(appointment_id, data.get('reason')))


@app.route('/appointments/<appointment_id>/reschedule', methods=['POST'])
async def reschedule_appointment(appointment_id):
    data = await _json()
    result = await scheduling.reschedule_appointment(appointment_id, data.get('start_datetime', ''))
    return respond(result)


@app.route('/appointments/<appointment_id>/paid', methods=['POST'])
async def record_payment(appointment_id):
    data = await _json()
    return respond(await scheduling.record_payment(appointment_id, data.get('price')))


@app.route('/appointments/<appointment_id>/reminder-sent', methods=['POST'])
async def reminder_sent(appointment_id):
    return respond(await scheduling.mark_reminder_sent(appointment_id))


@app.route('/series', methods=['POST'])
async def create_series():
    """Book a recurring series."""
    data = await _json()
    result = await scheduling.schedule_recurring_appointments(
        client_id=data.get('client_id'),
        datetime_str=data.get('start_datetime', ''),
        service_type=data.get('service_type', ''),
        frequency=data.get('frequency', ''),
        interval=data.get('interval', 1),
        end_type=data.get('end_type', 'never'),
        occurrence_count=data.get('occurrence_count'),
        end_date=data.get('end_date'),
        duration_minutes=data.get('duration_minutes'),
        price=data.get('price'),
        notes=data.get('notes')
    )
    return respond(result, 201)


@app.route('/series/<parent_id>/cancel', methods=['POST'])
async def cancel_series(parent_id):
    data = await _json()
    return respond(await scheduling.cancel_series(parent_id, data.get('reason')))


@app.route('/slots', methods=['GET'])
async def available_slots():
    """Free start times on a date."""
    result = await scheduling.check_availability(
        preferred_date=request.args.get('date', ''),
        service_type=request.args.get('service_type'),
        duration_minutes=request.args.get('duration')
    )
    return respond(result)


@app.route('/conflicts', methods=['GET'])
async def conflicts():
    result = await scheduling.check_conflict(
        datetime_str=request.args.get('start', ''),
        duration_minutes=request.args.get('duration'),
        exclude_id=request.args.get('exclude_id')
    )
    return respond(result)


@app.route('/statistics', methods=['GET'])
async def statistics():
    result = await scheduling.get_statistics(request.args.get('start', ''), request.args.get('end', ''))
    return respond(result)


@app.route('/health', methods=['GET'])
async def health():
    """Health check"""
    scheduler = scheduling.get_scheduler()
    return {
        "status": "healthy",
        "unsaved_changes": scheduler.has_unsaved_changes
    }


if __name__ == '__main__':
    config.validate()
    logger.info(f"Starting server on port {config.PORT}...")
    app.run(host=config.HOST, port=config.PORT)
