# parking routes
import logging
import math
from datetime import datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from parksys_api.controllers.admin import admin_required
from parksys_api.controllers.common import int_arg, json_body, services, success
from parksys_api.utils.errors import ValidationError, VehicleNotFoundError

logger = logging.getLogger(__name__)

parking_bp = Blueprint('parking', __name__, url_prefix='/api/parking')


def _vehicle_with_slot(vehicle):
    slot = services()['slots'].get_slot(vehicle.slot_id) if vehicle.slot_id else None
    return vehicle.to_dict(slot=slot)


@parking_bp.route('/slots', methods=['GET'])
def get_parking_slots():
    slots = services()['slots'].list_slots()
    return success([slot.to_dict() for slot in slots])


@parking_bp.route('/stats', methods=['GET'])
def get_dashboard_stats():
    return success(services()['reports'].dashboard_stats())


@parking_bp.route('/vehicles', methods=['GET'])
def get_active_vehicles():
    vehicles = services()['ledger'].list_active()
    return success([_vehicle_with_slot(vehicle) for vehicle in vehicles])


@parking_bp.route('/vehicles/all', methods=['GET'])
def get_all_vehicles():
    vehicles = services()['ledger'].list_all()
    return success([_vehicle_with_slot(vehicle) for vehicle in vehicles])


@parking_bp.route('/enter', methods=['POST'])
def vehicle_entry():
    data = json_body()
    result = services()['lifecycle'].enter_vehicle(
        registration_number=data.get('registrationNumber'),
        vehicle_type=data.get('type'),
        owner_name=data.get('ownerName'),
        phone_number=data.get('phoneNumber'),
        email=data.get('email'),
    )
    vehicle = result['vehicle']
    return success(
        vehicle.to_dict(slot=result['slot']),
        message=result['message'],
        status=201
    )


@parking_bp.route('/exit', methods=['POST'])
def vehicle_exit():
    data = json_body()
    vehicle_id = data.get('vehicleId')
    if not vehicle_id:
        raise ValidationError("Vehicle ID is required")

    result = services()['lifecycle'].exit_vehicle(vehicle_id, data.get('paymentMethod'))
    return success(result['record'].to_dict(), message=result['message'])


@parking_bp.route('/search', methods=['GET'])
def search_vehicle():
    registration_number = (request.args.get('registrationNumber') or '').strip()
    if not registration_number:
        raise ValidationError("Registration number is required")

    matches = services()['ledger'].search(registration_number)
    if not matches:
        raise VehicleNotFoundError("Vehicle not found or not currently parked")

    vehicle = matches[0]
    slot = services()['slots'].get_slot(vehicle.slot_id) if vehicle.slot_id else None
    return success({
        'vehicle': vehicle.to_dict(),
        'slot': slot.to_dict() if slot else None,
    })


@parking_bp.route('/records', methods=['GET'])
def get_parking_records():
    page = int_arg('page', 1)
    limit = int_arg('limit', 10)

    store = services()['store']
    records = store.list_records(offset=(page - 1) * limit, limit=limit)
    total = store.count_records()

    return success(
        [record.to_dict() for record in records],
        pagination={
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': math.ceil(total / limit),
        }
    )


@parking_bp.route('/reports/daily', methods=['POST'])
def generate_daily_report():
    raw_date = request.args.get('date')
    try:
        day = datetime.strptime(raw_date, '%Y-%m-%d').date() if raw_date else None
    except ValueError:
        raise ValidationError("date must be formatted as YYYY-MM-DD")

    report = services()['reports'].daily_summary(day)

    email_to = json_body().get('emailTo')
    if email_to:
        services()['dispatcher'].enqueue('email', email_to, 'dailyReport', report)

    return success(report, message='Daily report generated successfully')


@parking_bp.route('/reset', methods=['POST'])
@jwt_required()
@admin_required
def reset_parking_data():
    counts = services()['lifecycle'].reset()
    return success(counts, message='Parking data reset successfully')


@parking_bp.route('/test-notifications', methods=['POST'])
def test_notifications():
    data = json_body()
    email = data.get('email')
    phone_number = data.get('phoneNumber')
    if not email and not phone_number:
        raise ValidationError("Provide an email or phoneNumber to test")

    queued = services()['lifecycle'].send_test_notifications(email=email, phone_number=phone_number)
    return success(queued, message='Test notifications queued')
