import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

logger = logging.getLogger(__name__)


class SendGridEmailSender:
    """Delivers rendered HTML mail through SendGrid."""

    def __init__(self, api_key=None, sender_email=None, sender_name='ParkSys'):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name

    @property
    def configured(self):
        return bool(self.api_key and self.sender_email)

    def verify_credentials(self):
        """Verify SendGrid credentials are properly configured"""
        if not self.api_key:
            logger.error("SendGrid API key not configured")
            return False

        if not self.sender_email:
            logger.error("Sender email not configured")
            return False

        return True

    def send_email(self, receiver_email, subject, html_content):
        if not self.verify_credentials():
            logger.error("SendGrid credentials verification failed")
            return False

        try:
            sg = SendGridAPIClient(self.api_key)

            message = Mail(
                from_email=Email(self.sender_email, self.sender_name),
                to_emails=To(receiver_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            logger.info("Sending email '%s' to: %s", subject, receiver_email)
            response = sg.send(message)
            logger.info("Email sent successfully. Status code: %s", response.status_code)

            return True
        except Exception as e:
            logger.error("Error sending email to %s: %s", receiver_email, e)
            return False

    def test_connection(self):
        """Test SendGrid connection and credentials"""
        if not self.verify_credentials():
            return False
        try:
            sg = SendGridAPIClient(self.api_key)
            sg.client.api_keys.get()
            logger.info("SendGrid connection test successful")
            return True
        except Exception as e:
            logger.error("SendGrid connection test failed: %s", e)
            return False
