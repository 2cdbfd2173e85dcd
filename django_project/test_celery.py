"""
Tests for Celery configuration.

Verifies:
- Celery app is properly configured (broker, JSON serialization, UTC)
- Notification tasks are registered
- Beat runs the reminder dispatcher every minute
"""

from django.conf import settings
from django.test import SimpleTestCase

from django_project.celery import app


class CeleryConfigurationTests(SimpleTestCase):
    """Test Celery app configuration."""

    def test_celery_app_exists(self):
        self.assertEqual(app.main, "coparent")

    def test_celery_broker_url_configured(self):
        """Verify Celery broker URL is set to Redis."""
        self.assertTrue(app.conf.broker_url.startswith("redis://"))

    def test_celery_result_backend_configured(self):
        self.assertTrue(app.conf.result_backend.startswith("redis://"))

    def test_celery_uses_json_only(self):
        self.assertEqual(app.conf.accept_content, ["json"])
        self.assertEqual(app.conf.task_serializer, "json")
        self.assertEqual(app.conf.result_serializer, "json")

    def test_celery_timezone_configured(self):
        self.assertEqual(app.conf.timezone, "UTC")

    def test_tasks_run_eagerly_in_tests(self):
        self.assertTrue(app.conf.task_always_eager)


class CeleryTaskRegistrationTests(SimpleTestCase):
    def test_notification_tasks_are_registered(self):
        app.loader.import_default_modules()
        for name in (
            "notifications.tasks.process_record_change",
            "notifications.tasks.dispatch_event_reminders",
            "notifications.tasks.cleanup_sent_reminders",
        ):
            with self.subTest(task=name):
                self.assertIn(name, app.tasks)


class CeleryBeatScheduleTests(SimpleTestCase):
    def test_reminder_dispatch_runs_every_minute(self):
        entry = settings.CELERY_BEAT_SCHEDULE["dispatch-event-reminders"]
        self.assertEqual(entry["task"], "notifications.tasks.dispatch_event_reminders")
        self.assertEqual(entry["schedule"], 60.0)

    def test_cleanup_runs_daily(self):
        entry = settings.CELERY_BEAT_SCHEDULE["cleanup-sent-reminders"]
        self.assertEqual(entry["task"], "notifications.tasks.cleanup_sent_reminders")
        self.assertEqual(app.conf.beat_schedule["cleanup-sent-reminders"]["task"], entry["task"])
