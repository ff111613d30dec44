from datetime import date, datetime

from jinja2 import Environment, PackageLoader, TemplateError, TemplateNotFound, select_autoescape

from parksys_api.utils.errors import ValidationError

EMAIL_SUBJECTS = {
    'vehicleEntry': 'Vehicle Entry Confirmation - ParkSys',
    'vehicleExit': 'Payment Receipt - ParkSys',
    'otpVerification': 'Password Reset OTP - ParkSys',
    'highOccupancy': 'High Occupancy Alert - ParkSys',
    'dailyReport': 'Daily Parking Report - {date}',
}

TEMPLATE_IDS = tuple(EMAIL_SUBJECTS)


def format_datetime(value, fmt='%d %b %Y, %I:%M %p'):
    if not value:
        return ''
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return value
    if not isinstance(value, (datetime, date)):
        return str(value)
    return value.strftime(fmt)


def format_duration(minutes):
    try:
        minutes = int(minutes or 0)
    except (TypeError, ValueError):
        return str(minutes)
    return f"{minutes // 60}h {minutes % 60}m"


_env = Environment(
    loader=PackageLoader('parksys_api', 'templates'),
    autoescape=select_autoescape(['html']),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters['datetime'] = format_datetime
_env.filters['duration'] = format_duration


def _check(template_id):
    if template_id not in EMAIL_SUBJECTS:
        raise ValidationError(f"Unknown template '{template_id}'")


def _render(template, data):
    try:
        return template.render(**data)
    except (TemplateError, TypeError, ValueError) as e:
        raise ValidationError(f"Template data could not be rendered: {e}") from e


def render_email(template_id, data):
    """Return ``(subject, html)`` for a mail template."""
    _check(template_id)
    data = dict(data or {})
    data.setdefault('generatedAt', datetime.now())
    subject = EMAIL_SUBJECTS[template_id].format(
        date=format_datetime(data.get('date') or data['generatedAt'], '%a %b %d %Y')
    )
    html = _render(_env.get_template(f"email/{template_id}.html"), data)
    return subject, html


def render_sms(template_id, data):
    _check(template_id)
    try:
        template = _env.get_template(f"sms/{template_id}.txt")
    except TemplateNotFound:
        raise ValidationError(f"No SMS template for '{template_id}'")
    return _render(template, data or {}).strip()
