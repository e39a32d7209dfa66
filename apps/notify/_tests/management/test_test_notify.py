"""Tests for the test_notify management command."""

from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from apps.notify.drivers.webhook import WebhookNotifyDriver


class TestNotifyCommandTests(TestCase):
    @patch.object(WebhookNotifyDriver, "send", return_value={"success": True, "message_id": "n-1"})
    def test_json_config(self, mock_send):
        out = StringIO()
        call_command(
            "test_notify",
            "webhook",
            "--json-config",
            '{"endpoint": "https://example.com/hook"}',
            "--severity",
            "critical",
            stdout=out,
        )

        self.assertIn("sent successfully", out.getvalue())
        self.assertIn("n-1", out.getvalue())
        notification, config = mock_send.call_args[0]
        self.assertEqual(notification.severity, "critical")
        self.assertEqual(config["endpoint"], "https://example.com/hook")

    def test_invalid_json_config(self):
        with self.assertRaises(CommandError):
            call_command("test_notify", "chat", "--json-config", "{bad", stdout=StringIO())

    @override_settings(NOTIFY_CHANNELS={})
    def test_unconfigured_channel_fails(self):
        with self.assertRaisesMessage(CommandError, "Channel not configured"):
            call_command("test_notify", "email", stdout=StringIO())
