"""Tests for templating utilities."""

from django.test import SimpleTestCase

from apps.notify._tests.helpers import make_notification
from apps.notify.templating import (
    NotificationTemplatingService,
    format_duration,
    render_template,
)


class RenderTemplateTests(SimpleTestCase):
    def test_render_inline_template(self):
        self.assertEqual(render_template("Hello {{ name }}", {"name": "World"}), "Hello World")

    def test_empty_spec_renders_nothing(self):
        self.assertIsNone(render_template(None, {}))
        self.assertIsNone(render_template("", {}))

    def test_dict_spec(self):
        out = render_template({"type": "inline", "template": "{{ n }} builds"}, {"n": 3})
        self.assertEqual(out, "3 builds")

    def test_missing_file_raises(self):
        with self.assertRaises(ValueError):
            render_template("file:does_not_exist.j2", {})

    def test_syntax_error_raises(self):
        with self.assertRaises(ValueError):
            render_template("{% if %}", {})

    def test_duration_filter(self):
        self.assertEqual(render_template("{{ d | duration }}", {"d": 125}), "2m 5s")

    def test_format_duration_unknown(self):
        self.assertEqual(format_duration(None), "Unknown")
        self.assertEqual(format_duration(59), "0m 59s")


class NotificationTemplatingServiceTests(SimpleTestCase):
    def test_context(self):
        ctx = NotificationTemplatingService().build_template_context(make_notification())
        self.assertEqual(ctx["title"], "Main build failing")
        self.assertEqual(ctx["severity_label"], "High Priority")
        self.assertEqual(ctx["condition"], "Consecutive Failures greater than or equal to 3")
        self.assertEqual(ctx["pipeline_url"], "https://dash.example.com/pipelines/1")
        self.assertFalse(ctx["is_test"])

    def test_email_renders_text_and_html(self):
        rendered = NotificationTemplatingService().render_message_templates(
            "email", make_notification(), {}
        )
        self.assertIn("Pipeline Alert: Main build failing", rendered["text"])
        self.assertIn("<html>", rendered["html"])

    def test_chat_has_no_html(self):
        rendered = NotificationTemplatingService().render_message_templates(
            "chat", make_notification(), {}
        )
        self.assertIsNone(rendered["html"])

    def test_html_autoescaped(self):
        rendered = NotificationTemplatingService().render_message_templates(
            "email", make_notification(title="<script>x</script>"), {}
        )
        self.assertNotIn("<script>", rendered["html"])
        self.assertIn("<script>x</script>", rendered["text"])
