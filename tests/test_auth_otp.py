import json
import unittest
from unittest.mock import Mock

import redis

from parksys_api.config import TestConfig
from parksys_api.manage import create_app
from parksys_api.utils.errors import ServiceUnavailableError, ValidationError
from parksys_api.utils.otp_store import OtpStore, generate_otp
from tests.helpers import FakeRedis


class TestOtpStore(unittest.TestCase):
    def setUp(self):
        self.client = FakeRedis()
        self.otp = OtpStore(self.client, expiry=300)

    def test_generate(self):
        otp = generate_otp()
        self.assertEqual(len(otp), 6)
        self.assertTrue(otp.isdigit())

    def test_issue_and_consume(self):
        otp = self.otp.issue('reset_otp', 'a@b.co', user_id='u1')

        self.assertEqual(self.client.ttl['reset_otp:a@b.co'], 300)
        self.assertEqual(json.loads(self.client.data['reset_otp:a@b.co']), {'otp': otp, 'user_id': 'u1'})

        with self.assertRaises(ValidationError):
            self.otp.verify('reset_otp', 'a@b.co', 'wrong!')
        self.assertEqual(self.otp.verify('reset_otp', 'a@b.co', f' {otp} ')['user_id'], 'u1')

        with self.assertRaises(ValidationError) as raised:
            self.otp.verify('reset_otp', 'a@b.co', otp)
        self.assertEqual(raised.exception.message, 'OTP expired or invalid')

    def test_without_client(self):
        otp = OtpStore(None)
        self.assertFalse(otp.available)
        with self.assertRaises(ServiceUnavailableError):
            otp.issue('reset_otp', 'a@b.co')

    def test_redis_errors_become_unavailable(self):
        client = Mock()
        client.get.side_effect = redis.ConnectionError('refused')
        with self.assertRaises(ServiceUnavailableError):
            OtpStore(client).verify('reset_otp', 'a@b.co', '123456')


class TestPasswordResetFlows(unittest.TestCase):
    def setUp(self):
        self.redis = FakeRedis()
        self.app = create_app(TestConfig, redis_client=self.redis)
        self.client = self.app.test_client()
        self.dispatcher = self.app.extensions['parksys']['dispatcher']

    def queued_otp(self, channel):
        task = self.dispatcher.task_queue.get_nowait()
        self.assertEqual((task.channel, task.template_id), (channel, 'otpVerification'))
        return task

    def test_email_reset(self):
        response = self.client.post('/api/auth/request-otp', json={'email': 'Staff@parksys.com'})
        self.assertEqual(response.status_code, 200)
        task = self.queued_otp('email')
        self.assertEqual(task.recipient, 'staff@parksys.com')
        self.assertEqual(task.data['expiryMinutes'], 10)

        wrong = self.client.post('/api/auth/verify-otp', json={
            'email': 'staff@parksys.com', 'otp': '000000' if task.data['otp'] != '000000' else '111111',
            'newPassword': 'fresh-pass',
        })
        self.assertEqual(wrong.status_code, 400)

        reset = self.client.post('/api/auth/verify-otp', json={
            'email': 'staff@parksys.com', 'otp': task.data['otp'], 'newPassword': 'fresh-pass',
        })
        self.assertEqual(reset.status_code, 200)

        login = self.client.post('/api/auth/login', json={'username': 'staff', 'password': 'fresh-pass'})
        self.assertEqual(login.status_code, 200)

        replay = self.client.post('/api/auth/verify-otp', json={
            'email': 'staff@parksys.com', 'otp': task.data['otp'], 'newPassword': 'another-pass',
        })
        self.assertEqual(replay.status_code, 400)

    def test_unknown_email(self):
        response = self.client.post('/api/auth/request-otp', json={'email': 'ghost@parksys.com'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(self.client.post('/api/auth/request-otp', json={'email': 'nope'}).status_code, 400)

    def test_sms_reset(self):
        token = self.client.post('/api/auth/login', json={'username': 'admin', 'password': 'admin123'}) \
            .get_json()['data']['token']
        staff = self.app.extensions['parksys']['store'].find_user(username='staff')
        self.client.put(f'/api/auth/users/{staff.id}', headers={'Authorization': f'Bearer {token}'},
                        json={'phoneNumber': '9876543210'})

        response = self.client.post('/api/auth/request-sms-otp', json={'phoneNumber': '9876543210'})
        self.assertEqual(response.get_json()['data'], {'phoneNumber': '+919876543210'})
        task = self.queued_otp('sms')
        self.assertIn('reset_sms_otp:+919876543210', self.redis.data)

        reset = self.client.post('/api/auth/verify-sms-otp', json={
            'phoneNumber': '+919876543210', 'otp': task.data['otp'], 'newPassword': 'by-sms-1',
        })
        self.assertEqual(reset.status_code, 200)
        login = self.client.post('/api/auth/login', json={'username': 'staff', 'password': 'by-sms-1'})
        self.assertEqual(login.status_code, 200)

    def test_short_new_password(self):
        response = self.client.post('/api/auth/verify-otp', json={
            'email': 'staff@parksys.com', 'otp': '123456', 'newPassword': 'abc',
        })
        self.assertEqual(response.status_code, 400)

    def test_without_redis(self):
        app = create_app(TestConfig)
        response = app.test_client().post('/api/auth/request-otp', json={'email': 'staff@parksys.com'})
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.get_json()['code'], 'SERVICE_UNAVAILABLE')


if __name__ == '__main__':
    unittest.main()
