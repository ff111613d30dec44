import time
import unittest
from unittest.mock import Mock

from parksys_api.services.notifications import (
    DeliveryError,
    EmailChannel,
    NotificationDispatcher,
    SmsChannel,
)
from tests.helpers import RecordingChannel


def make_dispatcher(*channels, **options):
    options.setdefault('workers', 0)
    options.setdefault('max_retries', 3)
    options.setdefault('backoff_seconds', 2)
    options.setdefault('sleep', Mock())
    return NotificationDispatcher(channels=list(channels), **options)


class TestNotificationDispatcher(unittest.TestCase):
    def test_retries_with_exponential_backoff(self):
        channel = RecordingChannel('email', failures=3)
        dispatcher = make_dispatcher(channel)

        task = dispatcher.enqueue('email', 'owner@example.com', 'vehicleEntry', {})
        self.assertEqual(dispatcher.run_pending(), 1)

        self.assertEqual([c.args[0] for c in dispatcher.sleep.call_args_list], [2, 4, 8])
        self.assertEqual(task.attempts, 4)
        self.assertEqual(len(channel.delivered), 1)
        self.assertEqual(dispatcher.stats()['sent'], 1)

    def test_gives_up_after_max_retries(self):
        channel = RecordingChannel('email', failures=10)
        dispatcher = make_dispatcher(channel)

        dispatcher.enqueue('email', 'owner@example.com', 'vehicleExit', {})
        self.assertEqual(dispatcher.run_pending(), 0)

        self.assertEqual(channel.calls, 4)
        stats = dispatcher.stats()
        self.assertEqual((stats['queued'], stats['sent'], stats['failed']), (1, 0, 1))
        self.assertEqual(stats['lastFailure']['attempts'], 4)
        self.assertEqual(stats['lastFailure']['error'], 'gateway unavailable')

    def test_non_retryable_error_fails_immediately(self):
        channel = RecordingChannel('sms', failures=1,
                                   error=DeliveryError("SMS service not configured", retryable=False))
        dispatcher = make_dispatcher(channel)

        dispatcher.enqueue('sms', '9876543210', 'vehicleEntry', {})
        dispatcher.run_pending()

        self.assertEqual(channel.calls, 1)
        dispatcher.sleep.assert_not_called()
        self.assertEqual(dispatcher.stats()['failed'], 1)

    def test_enqueue_rules(self):
        dispatcher = make_dispatcher(RecordingChannel('email'))
        self.assertIsNone(dispatcher.enqueue('email', '', 'vehicleEntry', {}))
        with self.assertRaises(ValueError):
            dispatcher.enqueue('pigeon', 'roof', 'vehicleEntry', {})
        self.assertEqual(dispatcher.stats()['queued'], 0)

    def test_stats_shape(self):
        dispatcher = make_dispatcher(RecordingChannel('email'), RecordingChannel('sms'))
        dispatcher.enqueue('sms', '9876543210', 'vehicleEntry', {})

        self.assertEqual(dispatcher.stats(), {
            'queued': 1,
            'sent': 0,
            'failed': 0,
            'pending': 1,
            'workers': 0,
            'channels': {'email': True, 'sms': True},
            'lastFailure': None,
        })

    def test_worker_threads_deliver_in_background(self):
        channel = RecordingChannel('email')
        dispatcher = make_dispatcher(channel, workers=2)
        dispatcher.start()
        self.addCleanup(dispatcher.stop)

        for index in range(5):
            dispatcher.enqueue('email', f'user{index}@example.com', 'vehicleEntry', {})

        deadline = time.monotonic() + 5
        while dispatcher.stats()['sent'] < 5 and time.monotonic() < deadline:
            time.sleep(0.01)

        self.assertEqual(dispatcher.stats()['sent'], 5)
        self.assertEqual(dispatcher.stats()['workers'], 2)

    def test_start_without_workers_is_a_no_op(self):
        dispatcher = make_dispatcher(RecordingChannel('email'))
        dispatcher.start()
        self.assertFalse(dispatcher.running)


class TestChannels(unittest.TestCase):
    def entry_data(self):
        return {
            'registrationNumber': 'KA01AB1234',
            'type': 'two_wheeler',
            'slotNumber': 'A01',
            'entryTime': '2024-01-15T09:00:00',
            'rate': 10.0,
            'currency': 'INR',
        }

    def test_email_channel_renders_and_sends(self):
        sender = Mock()
        sender.verify_credentials.return_value = True
        sender.send_email.return_value = True

        EmailChannel(sender).send('owner@example.com', 'vehicleEntry', self.entry_data())

        recipient, subject, html = sender.send_email.call_args.args
        self.assertEqual(recipient, 'owner@example.com')
        self.assertEqual(subject, 'Vehicle Entry Confirmation - ParkSys')
        self.assertIn('KA01AB1234', html)

    def test_unconfigured_sender_is_not_retryable(self):
        sender = Mock()
        sender.verify_credentials.return_value = False

        with self.assertRaises(DeliveryError) as raised:
            SmsChannel(sender).send('9876543210', 'vehicleEntry', self.entry_data())
        self.assertFalse(raised.exception.retryable)
        sender.send_sms.assert_not_called()

    def test_rejected_message_is_retryable(self):
        sender = Mock()
        sender.verify_credentials.return_value = True
        sender.send_sms.return_value = False

        with self.assertRaises(DeliveryError) as raised:
            SmsChannel(sender).send('9876543210', 'vehicleEntry', self.entry_data())
        self.assertTrue(raised.exception.retryable)
        body = sender.send_sms.call_args.args[1]
        self.assertTrue(body.startswith('ParkSys: Vehicle KA01AB1234 parked at slot A01.'))


if __name__ == '__main__':
    unittest.main()
