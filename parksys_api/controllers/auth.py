import logging
from datetime import datetime

from flask import Blueprint, jsonify
from flask_jwt_extended import JWTManager, create_access_token, get_jwt_identity, jwt_required
from werkzeug.security import generate_password_hash

from parksys_api.controllers.admin import admin_required, load_current_user
from parksys_api.controllers.common import json_body, services, success
from parksys_api.models import User
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import UserRole
from parksys_api.services.lifecycle import EMAIL_PATTERN
from parksys_api.utils.errors import AuthError, NotFoundError, ServiceUnavailableError, ValidationError
from parksys_api.utils.sms_sender import format_phone_number

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

MIN_PASSWORD_LENGTH = 6
EMAIL_OTP_PURPOSE = 'reset_otp'
SMS_OTP_PURPOSE = 'reset_sms_otp'


def init_jwt(app):
    """Initialize JWT with the Flask app"""
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify(AuthError("Authorization token is required").to_dict()), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify(AuthError(f"Invalid token: {reason}").to_dict()), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify(AuthError("Token has expired").to_dict()), 401

    return jwt


def _issue_token(user):
    return create_access_token(
        identity=user.id,
        additional_claims={'role': user.role, 'username': user.username}
    )


def _check_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def _check_email(email):
    if not email or not EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email address is required")


def _get_user_or_404(user_id):
    user = services()['store'].get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    identifier = (data.get('username') or data.get('email') or '').strip()
    password = data.get('password')

    if not identifier or not password:
        raise ValidationError("Username and password are required")

    store = services()['store']
    user = store.find_user(username=identifier) or store.find_user(email=identifier.lower())
    if not user or not user.check_password(password):
        raise AuthError("Invalid credentials")
    if not user.is_active:
        raise AuthError("Account is deactivated")

    with store.unit_of_work():
        store.update(user, last_login=datetime.now())

    logger.info("User %s logged in", user.username)
    return success({'token': _issue_token(user), 'user': user.to_dict()}, message='Login successful')


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    return success(load_current_user().to_dict())


@auth_bp.route('/change-password', methods=['POST'])
@jwt_required()
def change_password():
    user = load_current_user()
    data = json_body()
    current_password = data.get('currentPassword')
    new_password = data.get('newPassword')

    if not current_password or not new_password:
        raise ValidationError("Current and new password are required")
    if not user.check_password(current_password):
        raise AuthError("Current password is incorrect")
    _check_password(new_password)

    store = services()['store']
    with store.unit_of_work():
        store.update(user, password_hash=generate_password_hash(new_password))

    logger.info("User %s changed password", user.username)
    return success(message='Password changed successfully')


@auth_bp.route('/register', methods=['POST'])
@jwt_required()
@admin_required
def register():
    data = json_body()
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip().lower()
    name = (data.get('name') or '').strip()
    password = data.get('password')
    role = data.get('role') or UserRole.STAFF.value

    if not username or not email or not name or not password:
        raise ValidationError("Username, email, name and password are required")
    _check_email(email)
    _check_password(password)
    if role not in UserRole.values():
        raise ValidationError(f"Invalid role. Use one of: {', '.join(UserRole.values())}")

    store = services()['store']
    if store.find_user(username=username, email=email):
        raise ValidationError("User with this username or email already exists")

    user = User(
        id=generate_uuid(),
        username=username,
        email=email,
        name=name,
        role=role,
        phone_number=(data.get('phoneNumber') or '').strip() or None,
        is_active=True,
        last_login=None,
        created_at=datetime.now(),
    )
    user.set_password(password)
    with store.unit_of_work():
        store.add_user(user)

    logger.info("User %s created with role %s by %s", username, role, get_jwt_identity())
    return success(user.to_dict(), message='User created successfully', status=201)


@auth_bp.route('/users', methods=['GET'])
@jwt_required()
@admin_required
def get_users():
    users = services()['store'].list_users()
    return success([user.to_dict() for user in users])


@auth_bp.route('/users/<user_id>', methods=['PUT'])
@jwt_required()
@admin_required
def update_user(user_id):
    store = services()['store']
    user = _get_user_or_404(user_id)
    data = json_body()
    changes = {}

    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        changes['name'] = name

    if 'email' in data:
        email = (data.get('email') or '').strip().lower()
        _check_email(email)
        existing = store.find_user(email=email)
        if existing and existing.id != user.id:
            raise ValidationError("Email already registered")
        changes['email'] = email

    if 'role' in data:
        if data['role'] not in UserRole.values():
            raise ValidationError(f"Invalid role. Use one of: {', '.join(UserRole.values())}")
        changes['role'] = data['role']

    if 'isActive' in data:
        if not isinstance(data['isActive'], bool):
            raise ValidationError("isActive must be a boolean")
        changes['is_active'] = data['isActive']

    if 'phoneNumber' in data:
        changes['phone_number'] = (data.get('phoneNumber') or '').strip() or None

    if changes:
        with store.unit_of_work():
            store.update(user, **changes)
        logger.info("User %s updated by %s: %s", user.username, get_jwt_identity(), sorted(changes))

    return success(user.to_dict(), message='User updated successfully')


@auth_bp.route('/users/<user_id>', methods=['DELETE'])
@jwt_required()
@admin_required
def delete_user(user_id):
    user = _get_user_or_404(user_id)

    # Prevent self-deletion
    if user.id == get_jwt_identity():
        raise ValidationError("Cannot delete your own account")

    store = services()['store']
    with store.unit_of_work():
        store.delete_user(user.id)

    logger.info("User %s deleted by %s", user.username, get_jwt_identity())
    return success(message='User deleted successfully')


# -- password reset by one-time password ------------------------------------

def _otp_template_data(otp, user):
    return {
        'otp': otp,
        'name': user.name,
        'expiryMinutes': services()['otp'].expiry // 60,
    }


def _reset_password(user_id, new_password):
    store = services()['store']
    user = _get_user_or_404(user_id)
    with store.unit_of_work():
        store.update(user, password_hash=generate_password_hash(new_password))
    logger.info("Password reset for user %s", user.username)


@auth_bp.route('/request-otp', methods=['POST'])
def request_otp():
    email = (json_body().get('email') or '').strip().lower()
    _check_email(email)

    user = services()['store'].find_user(email=email)
    if not user:
        raise NotFoundError("No account found with this email")

    otp = services()['otp'].issue(EMAIL_OTP_PURPOSE, email, user_id=user.id)
    services()['dispatcher'].enqueue('email', email, 'otpVerification', _otp_template_data(otp, user))
    return success({'email': email}, message='OTP sent to your email')


@auth_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    data = json_body()
    email = (data.get('email') or '').strip().lower()
    otp = data.get('otp')
    new_password = data.get('newPassword')

    if not email or not otp or not new_password:
        raise ValidationError("Email, OTP and new password are required")
    _check_password(new_password)

    stored = services()['otp'].verify(EMAIL_OTP_PURPOSE, email, otp)
    _reset_password(stored['user_id'], new_password)
    return success(message='Password reset successfully')


@auth_bp.route('/request-sms-otp', methods=['POST'])
def request_sms_otp():
    phone_number = (json_body().get('phoneNumber') or '').strip()
    formatted = format_phone_number(phone_number)
    if not formatted:
        raise ValidationError("A valid phone number is required")

    store = services()['store']
    user = store.find_user(phone_number=phone_number) or store.find_user(phone_number=formatted)
    if not user:
        raise NotFoundError("No account found with this phone number")

    otp = services()['otp'].issue(SMS_OTP_PURPOSE, formatted, user_id=user.id)
    services()['dispatcher'].enqueue('sms', formatted, 'otpVerification', _otp_template_data(otp, user))
    return success({'phoneNumber': formatted}, message='OTP sent to your phone')


@auth_bp.route('/verify-sms-otp', methods=['POST'])
def verify_sms_otp():
    data = json_body()
    formatted = format_phone_number((data.get('phoneNumber') or '').strip())
    otp = data.get('otp')
    new_password = data.get('newPassword')

    if not formatted or not otp or not new_password:
        raise ValidationError("Phone number, OTP and new password are required")
    _check_password(new_password)

    stored = services()['otp'].verify(SMS_OTP_PURPOSE, formatted, otp)
    _reset_password(stored['user_id'], new_password)
    return success(message='Password reset successfully')


# -- delivery configuration checks ------------------------------------------

TEST_SMS_BODY = "ParkSys: SMS configuration test successful! Your Twilio integration is working correctly."


def _sender(channel):
    return services()['dispatcher'].channels[channel].sender


@auth_bp.route('/test-email', methods=['POST'])
@jwt_required()
@admin_required
def check_email_config():
    if not _sender('email').test_connection():
        raise ServiceUnavailableError("Email configuration test failed")
    return success(message='Email configuration is working correctly')


@auth_bp.route('/test-sms', methods=['POST'])
@jwt_required()
@admin_required
def check_sms_config():
    formatted = format_phone_number((json_body().get('phoneNumber') or '').strip())
    if not formatted:
        raise ValidationError("A valid phone number is required for testing")

    # Sent inline rather than queued so the caller sees the outcome
    sender = _sender('sms')
    if not sender.test_connection() or not sender.send_sms(formatted, TEST_SMS_BODY):
        raise ServiceUnavailableError("SMS configuration test failed")

    logger.info("Test SMS sent to %s by %s", formatted, get_jwt_identity())
    return success({'phoneNumber': formatted}, message='Test SMS sent successfully')
