import json
import logging
import random
import string
import time

import redis

from parksys_api.utils.errors import ServiceUnavailableError, ValidationError

logger = logging.getLogger(__name__)


def init_redis(host='localhost', port=6379, max_retries=3, retry_delay=1):
    """Initialize Redis connection with retry logic"""
    for attempt in range(max_retries):
        try:
            redis_client = redis.Redis(
                host=host,
                port=port,
                db=0,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True
            )
            redis_client.ping()
            logger.info("Connected to Redis at %s:%s", host, port)
            return redis_client
        except redis.ConnectionError as e:
            if attempt < max_retries - 1:
                logger.warning("Redis connection attempt %d failed: %s. Retrying in %ss",
                               attempt + 1, e, retry_delay)
                time.sleep(retry_delay)
            else:
                logger.error("Failed to connect to Redis after %d attempts", max_retries)
                raise


def generate_otp(length=6):
    """Generate a random OTP"""
    return ''.join(random.choices(string.digits, k=length))


class OtpStore:
    """One-time passwords kept in Redis with an expiry."""

    def __init__(self, client=None, expiry=600):
        self.client = client
        self.expiry = expiry

    @property
    def available(self):
        return self.client is not None

    def _require_client(self):
        if self.client is None:
            raise ServiceUnavailableError("OTP service is currently unavailable")
        return self.client

    def issue(self, purpose, key, **payload):
        client = self._require_client()
        otp = generate_otp()
        try:
            client.setex(f"{purpose}:{key}", self.expiry, json.dumps({'otp': otp, **payload}))
        except redis.RedisError as e:
            logger.error("Redis error storing OTP: %s", e)
            raise ServiceUnavailableError("OTP service is currently unavailable")
        return otp

    def verify(self, purpose, key, otp):
        """Check and consume an OTP, returning the payload stored with it."""
        client = self._require_client()
        otp_key = f"{purpose}:{key}"
        try:
            stored = client.get(otp_key)
            if not stored:
                raise ValidationError("OTP expired or invalid")

            stored = json.loads(stored)
            if str(otp).strip() != stored['otp']:
                raise ValidationError("Invalid OTP")

            client.delete(otp_key)
        except redis.RedisError as e:
            logger.error("Redis error verifying OTP: %s", e)
            raise ServiceUnavailableError("OTP service is currently unavailable")
        return stored
