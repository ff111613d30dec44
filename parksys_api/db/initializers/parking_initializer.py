# db/initializers/parking_initializer.py
import logging
from datetime import datetime

from parksys_api.models import User
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import UserRole

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    {
        'username': 'admin',
        'email': 'admin@parksys.com',
        'name': 'System Administrator',
        'role': UserRole.ADMIN.value,
        'password': 'admin123',
    },
    {
        'username': 'staff',
        'email': 'staff@parksys.com',
        'name': 'Parking Staff',
        'role': UserRole.STAFF.value,
        'password': 'staff123',
    },
]


def initialize_users(store):
    """Create the default accounts if no user exists yet."""
    if store.list_users():
        logger.info("Users already initialized")
        return []

    created = []
    with store.unit_of_work():
        for account in DEFAULT_USERS:
            user = User(
                id=generate_uuid(),
                username=account['username'],
                email=account['email'],
                name=account['name'],
                role=account['role'],
                phone_number=None,
                is_active=True,
                last_login=None,
                created_at=datetime.now(),
            )
            user.set_password(account['password'])
            created.append(store.add_user(user))

    logger.info("Created %d default users", len(created))
    return created


def run_all_initializers(services):
    """Seed users, slots and rates on an empty store."""
    store = services['store']
    initialize_users(store)
    services['slots'].seed_initial_slots()
    services['rates'].seed_defaults()
