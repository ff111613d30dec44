import uuid
from datetime import datetime
from parksys_api.db.db import db


def generate_uuid():
    return str(uuid.uuid4())


__all__ = ['db', 'datetime', 'generate_uuid']
