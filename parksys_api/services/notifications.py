"""Outbound notification queue.

Lifecycle operations only enqueue tasks here; worker threads deliver them
through a channel (email or SMS) with exponential backoff between attempts.
Delivery failures are logged and counted, they never reach the request that
produced the task.
"""
import logging
import threading
import time
from datetime import datetime
from queue import Empty, Queue
from threading import Thread

from parksys_api.utils.templates import render_email, render_sms

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    def __init__(self, message, retryable=True):
        super().__init__(message)
        self.retryable = retryable


class EmailChannel:
    name = 'email'

    def __init__(self, sender):
        self.sender = sender

    def send(self, recipient, template_id, data):
        if not self.sender.verify_credentials():
            raise DeliveryError("Email service not configured", retryable=False)
        subject, html = render_email(template_id, data)
        if not self.sender.send_email(recipient, subject, html):
            raise DeliveryError(f"Email to {recipient} was not accepted")


class SmsChannel:
    name = 'sms'

    def __init__(self, sender):
        self.sender = sender

    def send(self, recipient, template_id, data):
        if not self.sender.verify_credentials():
            raise DeliveryError("SMS service not configured", retryable=False)
        body = render_sms(template_id, data)
        if not self.sender.send_sms(recipient, body):
            raise DeliveryError(f"SMS to {recipient} was not accepted")


class NotificationTask:
    def __init__(self, channel, recipient, template_id, data):
        self.channel = channel
        self.recipient = recipient
        self.template_id = template_id
        self.data = data
        self.attempts = 0
        self.created_at = datetime.now()

    def __repr__(self):
        return f'<NotificationTask {self.channel}:{self.template_id} -> {self.recipient}>'


class NotificationDispatcher:
    def __init__(self, channels, workers=2, max_retries=3, backoff_seconds=2, sleep=time.sleep):
        self.channels = {channel.name: channel for channel in channels}
        self.workers = workers
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

        self.task_queue = Queue()
        self.running = False
        self.worker_threads = []

        self._stats_lock = threading.Lock()
        self.queued = 0
        self.sent = 0
        self.failed = 0
        self.last_failure = None

    def enqueue(self, channel, recipient, template_id, data):
        if channel not in self.channels:
            raise ValueError(f"Unknown notification channel '{channel}'")
        if not recipient:
            return None

        task = NotificationTask(channel, recipient, template_id, data)
        with self._stats_lock:
            self.queued += 1
        self.task_queue.put(task)
        logger.info("Queued %r", task)
        return task

    def deliver(self, task):
        """Attempt a task until it succeeds or runs out of retries."""
        channel = self.channels[task.channel]
        while True:
            attempt = task.attempts
            task.attempts += 1
            try:
                channel.send(task.recipient, task.template_id, task.data)
            except Exception as e:
                retryable = getattr(e, 'retryable', True)
                if retryable and attempt < self.max_retries:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.warning("%r failed (attempt %d): %s; retrying in %ss", task, task.attempts, e, delay)
                    self.sleep(delay)
                    continue
                self._mark_failed(task, e)
                return False
            else:
                with self._stats_lock:
                    self.sent += 1
                logger.info("%r delivered after %d attempt(s)", task, task.attempts)
                return True

    def _mark_failed(self, task, error):
        logger.error("%r failed permanently after %d attempt(s): %s", task, task.attempts, error)
        with self._stats_lock:
            self.failed += 1
            self.last_failure = {
                'channel': task.channel,
                'recipient': task.recipient,
                'templateId': task.template_id,
                'attempts': task.attempts,
                'error': str(error),
                'failedAt': datetime.now().isoformat(),
            }

    def run_pending(self):
        """Deliver everything currently queued on the calling thread."""
        delivered = 0
        while True:
            try:
                task = self.task_queue.get_nowait()
            except Empty:
                return delivered
            try:
                if self.deliver(task):
                    delivered += 1
            finally:
                self.task_queue.task_done()

    def worker_loop(self):
        while self.running:
            try:
                task = self.task_queue.get(timeout=0.5)
            except Empty:
                continue
            try:
                self.deliver(task)
            except Exception:
                logger.exception("Unexpected error delivering %r", task)
            finally:
                self.task_queue.task_done()

    def start(self):
        if self.running or self.workers <= 0:
            return
        self.running = True
        self.worker_threads = [
            Thread(target=self.worker_loop, name=f"notification-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for thread in self.worker_threads:
            thread.start()
        logger.info("Started %d notification worker(s)", self.workers)

    def stop(self, timeout=5):
        self.running = False
        for thread in self.worker_threads:
            thread.join(timeout=timeout)
        self.worker_threads = []

    def stats(self):
        with self._stats_lock:
            return {
                'queued': self.queued,
                'sent': self.sent,
                'failed': self.failed,
                'pending': self.task_queue.qsize(),
                'workers': len(self.worker_threads),
                'channels': {
                    name: channel.sender.configured
                    for name, channel in self.channels.items()
                },
                'lastFailure': self.last_failure,
            }
