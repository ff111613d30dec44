import logging

import click
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from parksys_api import __version__
from parksys_api.config import Config
from parksys_api.controllers.auth import auth_bp, init_jwt
from parksys_api.controllers.config import config_bp
from parksys_api.controllers.email import email_bp
from parksys_api.controllers.parking_lot import parking_bp
from parksys_api.db.db import init_db
from parksys_api.db.initializers.parking_initializer import run_all_initializers
from parksys_api.services import (
    NotificationDispatcher,
    ParkingLifecycle,
    RateTable,
    ReportAggregator,
    SlotRegistry,
    VehicleLedger,
)
from parksys_api.services.notifications import EmailChannel, SmsChannel
from parksys_api.storage import create_store
from parksys_api.utils.email_sender import SendGridEmailSender
from parksys_api.utils.errors import ParkingError
from parksys_api.utils.otp_store import OtpStore, init_redis
from parksys_api.utils.sms_sender import TwilioSmsSender

logger = logging.getLogger(__name__)

# Schema changes go through Flask-Migrate:
# 1 flask --app parksys_api.manage db migrate -m "your commit message"
# 2 flask --app parksys_api.manage db upgrade
# For a fresh database `flask --app parksys_api.manage init-db` creates and seeds the tables.


def build_services(config, redis_client=None):
    """Wire the storage backend, domain services and notification queue."""
    store = create_store(config['STORAGE_BACKEND'])

    dispatcher = NotificationDispatcher(
        channels=[
            EmailChannel(SendGridEmailSender(config['SENDGRID_API_KEY'], config['SENDER_EMAIL'])),
            SmsChannel(TwilioSmsSender(
                config['TWILIO_ACCOUNT_SID'],
                config['TWILIO_AUTH_TOKEN'],
                config['TWILIO_PHONE_NUMBER']
            )),
        ],
        workers=config['NOTIFICATION_WORKERS'],
        max_retries=config['NOTIFICATION_MAX_RETRIES'],
        backoff_seconds=config['NOTIFICATION_BACKOFF_SECONDS'],
    )

    rates = RateTable(store, currency=config['CURRENCY'])
    slots = SlotRegistry(store)
    ledger = VehicleLedger(store)
    lifecycle = ParkingLifecycle(
        store, slots, ledger, rates,
        dispatcher=dispatcher,
        allocation_attempts=config['SLOT_ALLOCATION_ATTEMPTS'],
        high_occupancy_threshold=config['HIGH_OCCUPANCY_THRESHOLD'],
        admin_emails=config['ADMIN_ALERT_EMAILS'],
        admin_phones=config['ADMIN_ALERT_PHONES'],
    )

    return {
        'store': store,
        'rates': rates,
        'slots': slots,
        'ledger': ledger,
        'lifecycle': lifecycle,
        'reports': ReportAggregator(store, slots, currency=config['CURRENCY']),
        'dispatcher': dispatcher,
        'otp': OtpStore(redis_client, expiry=config['OTP_EXPIRY']),
    }


def connect_redis(config):
    if not config['REDIS_ENABLED']:
        return None
    try:
        return init_redis(config['REDIS_HOST'], config['REDIS_PORT'])
    except Exception as e:
        logger.warning("Redis initialization failed: %s. OTP functionality is disabled", e)
        return None


def register_error_handlers(app):
    @app.errorhandler(ParkingError)
    def handle_parking_error(e):
        if e.status_code >= 500:
            logger.error("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({
            'success': False,
            'error': e.description,
            'code': e.name.upper().replace(' ', '_'),
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception("Unhandled error")
        return jsonify({
            'success': False,
            'error': 'Internal server error',
            'code': 'INTERNAL_ERROR',
        }), 500


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create the tables and seed default users, slots and rates."""
        parksys = app.extensions['parksys']
        parksys['store'].create_schema()
        run_all_initializers(parksys)
        click.echo("Database initialized")

    @app.cli.command('reset-parking')
    def reset_parking_command():
        """Remove parked vehicles and records, and free every slot."""
        counts = app.extensions['parksys']['lifecycle'].reset()
        click.echo(
            f"Removed {counts['vehiclesRemoved']} parked vehicles and "
            f"{counts['recordsRemoved']} records; {counts['slots']} slots available"
        )


def create_app(config_class=Config, redis_client=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # CORS configuration
    CORS(app)
    app.config['CORS_HEADERS'] = 'Content-Type'
    app.json.sort_keys = app.config['JSON_SORT_KEYS']

    app.register_blueprint(auth_bp)
    app.register_blueprint(parking_bp)
    app.register_blueprint(config_bp)
    app.register_blueprint(email_bp)

    init_jwt(app)
    init_db(app)
    register_error_handlers(app)
    register_commands(app)

    if redis_client is None:
        redis_client = connect_redis(app.config)
    parksys = build_services(app.config, redis_client)
    app.extensions['parksys'] = parksys
    logger.info("Using %s storage backend", parksys['store'].name)

    if app.config['SEED_DEFAULT_DATA']:
        with app.app_context():
            parksys['store'].create_schema()
            run_all_initializers(parksys)

    parksys['dispatcher'].start()

    @app.route('/api/ping', methods=['GET'])
    def ping():
        return jsonify({'success': True, 'message': 'pong', 'version': __version__})

    @app.route('/')
    def index():
        return "Backend is alive!"

    return app


if __name__ == '__main__':
    create_app().run(host="0.0.0.0", port=5001, debug=True)
