"""Chat (Slack-compatible incoming webhook) notification driver."""

import logging
import urllib.error
from typing import Any

from apps.notify.drivers.base import AlertNotification, BaseNotifyDriver

logger = logging.getLogger(__name__)


class ChatNotifyDriver(BaseNotifyDriver):
    """
    Driver for chat notifications through an incoming webhook.

    Sends a Slack-compatible attachment colored by severity, with fields for
    the pipeline, build and condition, plus links back to the dashboard.
    """

    name = "chat"

    STATUS_EMOJIS = {
        "success": ":white_check_mark:",
        "failed": ":x:",
        "running": ":running:",
        "pending": ":clock1:",
        "cancelled": ":no_entry:",
    }

    def validate_config(self, config: dict[str, Any]) -> bool:
        url = config.get("webhook_url")
        return isinstance(url, str) and url.startswith(("https://", "http://"))

    def _field(self, title: str, value: Any, short: bool = True) -> dict[str, Any]:
        return {"title": title, "value": str(value) if value not in (None, "") else "Unknown", "short": short}

    def build_payload(self, notification: AlertNotification, config: dict[str, Any]) -> dict[str, Any]:
        rendered = self._render_message_templates(notification, config)
        build = notification.build or {}
        status = build.get("status") or "Unknown"
        emoji = self.STATUS_EMOJIS.get(status, ":question:")

        fields = [
            self._field("Severity", notification.severity.upper()),
            self._field("Pipeline", notification.pipeline.get("name")),
            self._field("Build Status", f"{emoji} {status}"),
            self._field("Condition", notification.rule.get("condition")),
        ]
        actions = [
            {
                "type": "button",
                "text": "View Dashboard",
                "url": notification.pipeline_url,
                "style": "primary",
            }
        ]

        if build:
            commit = build.get("commit_hash") or ""
            fields += [
                self._field("Build ID", build.get("external_id") or build.get("id")),
                self._field("Branch", build.get("branch")),
                self._field("Commit", commit[:8]),
                self._field("Author", build.get("author")),
            ]
            if build.get("duration"):
                duration = int(build["duration"])
                fields.append(self._field("Duration", f"{duration // 60}m {duration % 60}s"))
            actions.append(
                {"type": "button", "text": "View Build", "url": notification.build_url, "style": "default"}
            )

        if notification.metric_value is not None:
            fields.append(self._field("Current Value", notification.metric_value))

        attachment = {
            "color": notification.severity_color,
            "title": f"{'[TEST] ' if notification.is_test else ''}Alert: {notification.title}",
            "text": notification.rule.get("description") or notification.message,
            "fields": fields,
            "actions": actions,
            "footer": "CI/CD Pipeline Health Dashboard",
            "ts": int(notification.triggered_at.timestamp()),
        }

        payload: dict[str, Any] = {"text": rendered.get("text") or notification.message, "attachments": [attachment]}
        for key in ("channel", "username", "icon_emoji"):
            if config.get(key):
                payload[key] = config[key]
        return payload

    def send(self, notification: AlertNotification, config: dict[str, Any]) -> dict[str, Any]:
        if not self.validate_config(config):
            return {
                "success": False,
                "error": "Invalid chat configuration (valid webhook_url required)",
            }

        try:
            payload = self.build_payload(notification, config)
            status_code, response_body = self._post_json(
                config["webhook_url"], payload, timeout=config.get("timeout")
            )
        except urllib.error.HTTPError as e:
            return self._handle_http_error(e, "Chat")
        except urllib.error.URLError as e:
            return self._handle_url_error(e, "Chat")
        except Exception as e:
            return self._handle_exception(e, "Chat", "send notification to")

        if not 200 <= status_code < 300:
            logger.warning(f"Unexpected chat webhook response {status_code}: {response_body}")
            return {"success": False, "error": f"Chat webhook returned status {status_code}"}

        logger.info(f"Chat notification sent: {notification.title}")
        return {
            "success": True,
            "message_id": notification.notification_id,
            "metadata": {"status_code": status_code, "severity": notification.severity},
        }
