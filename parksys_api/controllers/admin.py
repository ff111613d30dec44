from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from parksys_api.controllers.common import services
from parksys_api.models.enums import UserRole
from parksys_api.utils.errors import AuthError, PermissionDeniedError


def load_current_user():
    """Resolve the token's user, refusing deleted or deactivated accounts."""
    verify_jwt_in_request()
    user = services()['store'].get_user(get_jwt_identity())
    if not user or not user.is_active:
        raise AuthError("User not found or inactive")
    g.current_user = user
    return user


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        current_user = load_current_user()
        if current_user.role != UserRole.ADMIN.value:
            raise PermissionDeniedError("Admin privileges required")
        return f(*args, **kwargs)
    return decorated_function
