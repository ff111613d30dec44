import unittest
from datetime import date, datetime
from unittest.mock import Mock, patch

from parksys_api.utils.errors import ValidationError
from parksys_api.utils import templates
from parksys_api.utils.templates import (
    TEMPLATE_IDS,
    format_datetime,
    format_duration,
    render_email,
    render_sms,
)


class TestTemplates(unittest.TestCase):
    def test_filters(self):
        self.assertEqual(format_duration(125), '2h 5m')
        self.assertEqual(format_duration(None), '0h 0m')
        self.assertEqual(format_datetime('2024-01-15T09:05:00'), '15 Jan 2024, 09:05 AM')
        self.assertEqual(format_datetime('yesterday'), 'yesterday')
        self.assertEqual(format_datetime(None), '')

    def test_filters_show_unusable_values_as_given(self):
        self.assertEqual(format_datetime(123), '123')
        self.assertEqual(format_datetime(date(2024, 1, 15), '%d/%m/%Y'), '15/01/2024')
        self.assertEqual(format_duration('abc'), 'abc')
        self.assertEqual(format_duration([90]), '[90]')

        _, html = render_email('vehicleExit', {'entryTime': 123, 'duration': 'abc'})
        self.assertIn('abc', html)
        subject, _ = render_email('dailyReport', {'date': 123})
        self.assertEqual(subject, 'Daily Parking Report - 123')

    def test_render_failures_are_validation_errors(self):
        broken = Mock(side_effect=ValueError('bad minutes'))
        with patch.dict(templates._env.filters, {'duration': broken}):
            with self.assertRaises(ValidationError):
                render_email('vehicleExit', {'duration': 5})
            with self.assertRaises(ValidationError):
                render_sms('vehicleExit', {'duration': 5})

    def test_exit_receipt(self):
        subject, html = render_email('vehicleExit', {
            'registrationNumber': 'KA01AB1234',
            'slotNumber': 'A01',
            'entryTime': '2024-01-15T09:00:00',
            'exitTime': '2024-01-15T10:01:00',
            'duration': 61,
            'amount': 40.0,
            'currency': 'INR',
            'paymentMethod': 'upi',
            'receiptId': 'RCP-1705309260000-AB12',
        })
        self.assertEqual(subject, 'Payment Receipt - ParkSys')
        self.assertIn('RCP-1705309260000-AB12', html)
        self.assertIn('1h 1m', html)
        self.assertIn('INR 40.0', html)
        self.assertIn('UPI', html)

    def test_daily_report_subject_uses_report_date(self):
        subject, _ = render_email('dailyReport', {'date': '2024-01-15', 'totalVehicles': 3})
        self.assertEqual(subject, 'Daily Parking Report - Mon Jan 15 2024')

    def test_values_are_escaped_in_html(self):
        _, html = render_email('vehicleEntry', {'ownerName': '<script>x</script>'})
        self.assertNotIn('<script>x</script>', html)

    def test_every_template_renders_both_forms(self):
        for template_id in TEMPLATE_IDS:
            with self.subTest(template_id=template_id):
                subject, html = render_email(template_id, {'generatedAt': datetime(2024, 1, 15)})
                self.assertTrue(subject)
                self.assertIn('ParkSys', html)
                self.assertTrue(render_sms(template_id, {}))

    def test_sms_otp(self):
        self.assertEqual(
            render_sms('otpVerification', {'otp': '123456'}),
            'ParkSys: Your password reset OTP is 123456. Valid for 10 minutes. Do not share this OTP with anyone.'
        )

    def test_unknown_template(self):
        with self.assertRaises(ValidationError):
            render_email('birthday', {})
        with self.assertRaises(ValidationError):
            render_sms('birthday', {})


if __name__ == '__main__':
    unittest.main()
