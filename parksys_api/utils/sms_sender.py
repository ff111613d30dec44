import logging
import re

import requests

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
TWILIO_ACCOUNT_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}.json"


def format_phone_number(phone):
    """Normalise a phone number to E.164, defaulting to India (+91).

    Returns None when the number cannot be interpreted.
    """
    if not phone:
        return None

    cleaned = re.sub(r'\D', '', phone)

    if len(cleaned) == 10:
        return f"+91{cleaned}"

    if phone.startswith('+'):
        return phone

    if len(cleaned) == 12 and cleaned.startswith('91'):
        return f"+{cleaned}"

    # International numbers that only lack the plus sign
    if len(cleaned) > 10:
        return f"+{cleaned}"

    logger.warning("Unable to format phone number: %s", phone)
    return None


class TwilioSmsSender:
    """Sends text messages through the Twilio REST API."""

    def __init__(self, account_sid=None, auth_token=None, from_number=None, timeout=10):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout

    @property
    def configured(self):
        return bool(self.account_sid and self.auth_token and self.from_number)

    def verify_credentials(self):
        if not (self.account_sid and self.auth_token and self.from_number):
            logger.error("Twilio credentials not configured")
            return False
        return True

    def test_connection(self):
        """Fetch the Twilio account to check the credentials"""
        if not self.verify_credentials():
            return False
        try:
            response = requests.get(
                TWILIO_ACCOUNT_URL.format(sid=self.account_sid),
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Twilio connection test failed: %s", e)
            return False

        if response.status_code != 200:
            logger.error("Twilio connection test failed: %s %s", response.status_code, response.text)
            return False
        logger.info("Twilio connection test successful")
        return True

    def send_sms(self, phone_number, body):
        formatted = format_phone_number(phone_number)
        if not formatted:
            return False
        if not self.verify_credentials():
            return False

        try:
            response = requests.post(
                TWILIO_MESSAGES_URL.format(sid=self.account_sid),
                data={'To': formatted, 'From': self.from_number, 'Body': body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Error sending SMS to %s: %s", formatted, e)
            return False

        if response.status_code not in (200, 201):
            logger.error("Twilio rejected SMS to %s: %s %s", formatted, response.status_code, response.text)
            return False

        logger.info("SMS sent to %s, SID: %s", formatted, response.json().get('sid'))
        return True
