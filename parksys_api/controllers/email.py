from flask import Blueprint

from parksys_api.controllers.common import json_body, services, success
from parksys_api.utils.errors import ValidationError
from parksys_api.utils.templates import TEMPLATE_IDS, render_email, render_sms

email_bp = Blueprint('email', __name__, url_prefix='/api/email')


def _template_request():
    data = json_body()
    template_id = data.get('templateId')
    if template_id not in TEMPLATE_IDS:
        raise ValidationError(f"templateId must be one of: {', '.join(TEMPLATE_IDS)}")
    template_data = data.get('data') or {}
    if not isinstance(template_data, dict):
        raise ValidationError("data must be an object")
    return data, template_id, template_data


@email_bp.route('/preview', methods=['POST'])
def preview_template():
    _, template_id, template_data = _template_request()
    subject, html = render_email(template_id, template_data)
    return success({
        'templateId': template_id,
        'subject': subject,
        'html': html,
        'sms': render_sms(template_id, template_data),
    })


@email_bp.route('/test', methods=['POST'])
def send_test_email():
    data, template_id, template_data = _template_request()
    test_email = (data.get('testEmail') or '').strip()
    if not test_email:
        raise ValidationError("testEmail is required")

    services()['dispatcher'].enqueue('email', test_email, template_id, template_data)
    return success({'templateId': template_id, 'testEmail': test_email},
                   message=f"Test email queued for {test_email}")


@email_bp.route('/stats', methods=['GET'])
def get_email_stats():
    return success(services()['dispatcher'].stats())
