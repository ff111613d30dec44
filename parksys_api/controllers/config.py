from flask import Blueprint
from flask_jwt_extended import jwt_required

from parksys_api.controllers.admin import admin_required
from parksys_api.controllers.common import json_body, services, success
from parksys_api.models.enums import VehicleType
from parksys_api.utils.errors import ValidationError

config_bp = Blueprint('config', __name__, url_prefix='/api/config')

# Request body field -> vehicle category
SLOT_FIELDS = {
    'twoWheelerSlots': VehicleType.TWO_WHEELER.value,
    'fourWheelerSlots': VehicleType.FOUR_WHEELER.value,
    'truckSlots': VehicleType.TRUCK.value,
    'busSlots': VehicleType.BUS.value,
}


def _slot_targets(data):
    targets = {}
    for field, vehicle_type in SLOT_FIELDS.items():
        value = data.get(field)
        if value is None:
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError(f"{field} must be a non-negative integer")
        targets[vehicle_type] = value
    return targets


def _slot_summary():
    counts = services()['slots'].counts_by_category()
    summary = {'totalSlots': sum(counts.values())}
    for field, vehicle_type in SLOT_FIELDS.items():
        summary[field] = counts[vehicle_type]
    return summary


@config_bp.route('/system', methods=['GET'])
def get_system_config():
    slots = services()['slots']
    counts = slots.counts_by_category()
    return success({
        'totalSlots': sum(counts.values()),
        'slotsByType': counts,
        'rates': [rate.to_dict() for rate in services()['rates'].list_current_rates()],
    })


@config_bp.route('/rates', methods=['GET'])
def get_rates():
    return success([rate.to_dict() for rate in services()['rates'].list_current_rates()])


@config_bp.route('/rates', methods=['POST'])
@jwt_required()
@admin_required
def update_rates():
    rates = json_body().get('rates')
    if not isinstance(rates, list) or not rates:
        raise ValidationError("Rates array is required")
    if not all(isinstance(entry, dict) for entry in rates):
        raise ValidationError("Each rate must be an object")

    rows = services()['rates'].update_rates([
        {
            'vehicle_type': entry.get('vehicleType'),
            'base_rate': entry.get('baseRate'),
            'additional_rate': entry.get('additionalRate'),
        }
        for entry in rates
    ])
    return success([row.to_dict() for row in rows], message='Parking rates updated successfully')


@config_bp.route('/slots', methods=['POST'])
@jwt_required()
@admin_required
def update_slot_configuration():
    targets = _slot_targets(json_body())
    shortfall, created = services()['slots'].ensure_slot_counts(targets)

    data = _slot_summary()
    data['slotsAdded'] = len(created)
    data['addedByType'] = shortfall
    if created:
        message = f"Added {len(created)} new parking slots. Existing slots were preserved."
    else:
        message = 'No new slots needed. Current configuration already meets or exceeds requirements.'
    return success(data, message=message)


@config_bp.route('/slots', methods=['DELETE'])
@jwt_required()
@admin_required
def remove_excess_slots():
    targets = _slot_targets(json_body())
    if not targets:
        raise ValidationError("At least one slot target is required")
    removed = services()['slots'].remove_available_slots(targets)

    data = _slot_summary()
    data['removedSlots'] = sum(removed.values())
    data['removalSummary'] = removed
    return success(
        data,
        message=f"Removed {data['removedSlots']} available slots. Occupied slots were preserved."
    )
