import unittest
from unittest.mock import Mock, patch

import requests

from parksys_api.utils.email_sender import SendGridEmailSender
from parksys_api.utils.sms_sender import TwilioSmsSender, format_phone_number


class TestFormatPhoneNumber(unittest.TestCase):
    def test_formats(self):
        cases = {
            '9876543210': '+919876543210',
            '98765 43210': '+919876543210',
            '+14155550100': '+14155550100',
            '919876543210': '+919876543210',
            '4415550100123': '+4415550100123',
            '12345': None,
            '': None,
            None: None,
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(format_phone_number(raw), expected)


class TestTwilioSmsSender(unittest.TestCase):
    def setUp(self):
        self.sender = TwilioSmsSender('AC123', 'token', '+15005550006')

    @patch('parksys_api.utils.sms_sender.requests.post')
    def test_send_posts_to_messages_endpoint(self, post):
        post.return_value = Mock(status_code=201, json=Mock(return_value={'sid': 'SM1'}))

        self.assertTrue(self.sender.send_sms('9876543210', 'hello'))

        url = post.call_args.args[0]
        self.assertEqual(url, 'https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json')
        self.assertEqual(post.call_args.kwargs['data'],
                         {'To': '+919876543210', 'From': '+15005550006', 'Body': 'hello'})
        self.assertEqual(post.call_args.kwargs['auth'], ('AC123', 'token'))

    @patch('parksys_api.utils.sms_sender.requests.post')
    def test_rejected_or_failed_requests(self, post):
        post.return_value = Mock(status_code=400, text='bad number')
        self.assertFalse(self.sender.send_sms('9876543210', 'hello'))

        post.side_effect = requests.ConnectionError('down')
        self.assertFalse(self.sender.send_sms('9876543210', 'hello'))

    @patch('parksys_api.utils.sms_sender.requests.post')
    def test_unusable_number_or_credentials(self, post):
        self.assertFalse(self.sender.send_sms('123', 'hello'))
        unconfigured = TwilioSmsSender()
        self.assertFalse(unconfigured.configured)
        self.assertFalse(unconfigured.send_sms('9876543210', 'hello'))
        post.assert_not_called()

    @patch('parksys_api.utils.sms_sender.requests.get')
    def test_connection_check(self, get):
        get.return_value = Mock(status_code=200)
        self.assertTrue(self.sender.test_connection())
        self.assertEqual(get.call_args.args[0], 'https://api.twilio.com/2010-04-01/Accounts/AC123.json')
        self.assertEqual(get.call_args.kwargs['auth'], ('AC123', 'token'))

        get.return_value = Mock(status_code=401, text='Authenticate')
        self.assertFalse(self.sender.test_connection())

        get.side_effect = requests.Timeout('slow')
        self.assertFalse(self.sender.test_connection())

        self.assertFalse(TwilioSmsSender().test_connection())
        self.assertEqual(get.call_count, 3)


class TestSendGridEmailSender(unittest.TestCase):
    @patch('parksys_api.utils.email_sender.SendGridAPIClient')
    def test_send_email(self, client_class):
        client_class.return_value.send.return_value = Mock(status_code=202)
        sender = SendGridEmailSender('SG.key', 'noreply@parksys.com')

        self.assertTrue(sender.send_email('owner@example.com', 'Subject', '<p>Hi</p>'))
        client_class.assert_called_once_with('SG.key')
        client_class.return_value.send.assert_called_once()

    @patch('parksys_api.utils.email_sender.SendGridAPIClient')
    def test_send_failure_returns_false(self, client_class):
        client_class.return_value.send.side_effect = RuntimeError('401 Unauthorized')
        sender = SendGridEmailSender('SG.key', 'noreply@parksys.com')
        self.assertFalse(sender.send_email('owner@example.com', 'Subject', '<p>Hi</p>'))

    @patch('parksys_api.utils.email_sender.SendGridAPIClient')
    def test_connection_check(self, client_class):
        sender = SendGridEmailSender('SG.key', 'noreply@parksys.com')
        self.assertTrue(sender.test_connection())
        client_class.return_value.client.api_keys.get.assert_called_once_with()

        client_class.return_value.client.api_keys.get.side_effect = RuntimeError('403 Forbidden')
        self.assertFalse(sender.test_connection())

    @patch('parksys_api.utils.email_sender.SendGridAPIClient')
    def test_missing_credentials(self, client_class):
        sender = SendGridEmailSender(api_key='SG.key')
        self.assertFalse(sender.configured)
        self.assertFalse(sender.send_email('owner@example.com', 'Subject', '<p>Hi</p>'))
        client_class.assert_not_called()


if __name__ == '__main__':
    unittest.main()
