import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _csv(name):
    raw = os.getenv(name, '')
    return [item.strip() for item in raw.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'FB27D156173716A31912F1BD6CEDB')
    JSON_SORT_KEYS = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Auth
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'parksys-secret-key-2024')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)

    # Storage: 'sql' or 'memory', picked once at startup
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'sql')
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///parksys.db')
    SEED_DEFAULT_DATA = os.getenv('SEED_DEFAULT_DATA', 'true').lower() == 'true'
    SLOT_ALLOCATION_ATTEMPTS = int(os.getenv('SLOT_ALLOCATION_ATTEMPTS', 3))

    # Notifications
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY')
    SENDER_EMAIL = os.getenv('SENDER_EMAIL')
    TWILIO_ACCOUNT_SID = os.getenv('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.getenv('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.getenv('TWILIO_PHONE_NUMBER')
    NOTIFICATION_WORKERS = int(os.getenv('NOTIFICATION_WORKERS', 2))
    NOTIFICATION_MAX_RETRIES = int(os.getenv('NOTIFICATION_MAX_RETRIES', 3))
    NOTIFICATION_BACKOFF_SECONDS = float(os.getenv('NOTIFICATION_BACKOFF_SECONDS', 2))
    ADMIN_ALERT_EMAILS = _csv('ADMIN_ALERT_EMAILS')
    ADMIN_ALERT_PHONES = _csv('ADMIN_ALERT_PHONES')
    HIGH_OCCUPANCY_THRESHOLD = int(os.getenv('HIGH_OCCUPANCY_THRESHOLD', 90))

    # OTP storage
    REDIS_HOST = os.getenv('REDIS_HOST', 'localhost')
    REDIS_PORT = int(os.getenv('REDIS_PORT', 6379))
    REDIS_ENABLED = os.getenv('REDIS_ENABLED', 'true').lower() == 'true'
    OTP_EXPIRY = int(os.getenv('OTP_EXPIRY', 600))  # 10 minutes

    CURRENCY = os.getenv('CURRENCY', 'INR')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    STORAGE_BACKEND = 'memory'
    DATABASE_URL = 'sqlite://'
    SEED_DEFAULT_DATA = True
    # Tests drain the notification queue by hand
    NOTIFICATION_WORKERS = 0
    NOTIFICATION_BACKOFF_SECONDS = 0
    SENDGRID_API_KEY = None
    SENDER_EMAIL = None
    TWILIO_ACCOUNT_SID = None
    TWILIO_AUTH_TOKEN = None
    TWILIO_PHONE_NUMBER = None
    REDIS_ENABLED = False
    ADMIN_ALERT_EMAILS = []
    ADMIN_ALERT_PHONES = []
