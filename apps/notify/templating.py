"""Jinja2 templating for notification bodies.

Default templates live in apps/notify/templates/ and are named after the
channel and part they render (e.g. `chat_text.j2`, `email.html.j2`). A
channel's config may override them with its own template spec.

Template spec accepted by render_template:
- None or empty -> returns None
- string starting with "file:<name>" -> loads apps/notify/templates/<name>
- dict: {"type": "inline"|"file", "template": "..."}
- string (default) -> a template file name when one exists, else an inline template

render_template returns the rendered string or raises ValueError on an
invalid or missing template.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jinja2

if TYPE_CHECKING:
    from apps.notify.drivers.base import AlertNotification

TEMPLATES_DIR = Path(__file__).parent / "templates"

logger = logging.getLogger(__name__)


def format_duration(seconds) -> str:
    """Render a duration in seconds as `<m>m <s>s`."""
    if seconds in (None, ""):
        return "Unknown"
    seconds = int(seconds)
    return f"{seconds // 60}m {seconds % 60}s"


_JINJA_ENV = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=jinja2.select_autoescape(enabled_extensions=("html.j2",), default=False),
    trim_blocks=True,
    lstrip_blocks=True,
)
_JINJA_ENV.filters["duration"] = format_duration


def _template_exists(name: str) -> bool:
    return (TEMPLATES_DIR / name).is_file()


def render_template(spec: Any, context: dict[str, Any]) -> str | None:
    """Render a template spec with the provided context.

    Args:
        spec: template spec (None, string, or dict)
        context: mapping of variables for the template

    Returns:
        Rendered string or None if spec is falsy
    """
    if not spec:
        return None

    template_name: str | None = None
    template_str: str | None = None

    if isinstance(spec, dict):
        if spec.get("type", "inline") == "file":
            template_name = spec.get("template")
        else:
            template_str = spec.get("template")
    elif isinstance(spec, str):
        if spec.startswith("file:"):
            template_name = spec.split(":", 1)[1]
        elif _template_exists(spec):
            template_name = spec
        else:
            template_str = spec
    else:
        raise ValueError("Unsupported template spec")

    try:
        if template_name:
            logger.debug("render_template: loading template file: %s", template_name)
            template = _JINJA_ENV.get_template(template_name)
        elif template_str is not None:
            template = _JINJA_ENV.from_string(template_str)
        else:
            return None
        return template.render(**context)
    except jinja2.TemplateNotFound:
        raise ValueError(f"Template file not found: {template_name}")
    except jinja2.TemplateError as e:
        raise ValueError(f"Jinja2 render error: {e}")


class NotificationTemplatingService:
    """Builds the template context for an alert notification and renders its bodies."""

    def build_template_context(self, notification: "AlertNotification") -> dict[str, Any]:
        rule = notification.rule or {}
        build = notification.build or {}
        return {
            "title": notification.title,
            "message": notification.message,
            "severity": notification.severity,
            "severity_label": notification.severity_label,
            "severity_color": notification.severity_color,
            "rule": rule,
            "condition": rule.get("condition", ""),
            "pipeline": notification.pipeline or {},
            "build": build,
            "metric_value": notification.metric_value,
            "triggered_at": notification.triggered_at,
            "dashboard_url": notification.dashboard_url,
            "pipeline_url": notification.pipeline_url,
            "build_url": notification.build_url,
            "is_test": notification.is_test,
        }

    def render_message_templates(
        self,
        channel: str,
        notification: "AlertNotification",
        config: dict[str, Any] | None = None,
    ) -> dict[str, str | None]:
        """Render the text (and, when a template exists, HTML) body for a channel.

        Looks for keys in config:
        - 'text_template' -> plain text body, default `<channel>_text.j2`
        - 'html_template' -> HTML body, default `<channel>.html.j2` when present
        """
        config = config or {}
        ctx = self.build_template_context(notification)

        text_spec = config.get("text_template") or f"file:{channel}_text.j2"
        html_spec = config.get("html_template")
        if not html_spec and _template_exists(f"{channel}.html.j2"):
            html_spec = f"file:{channel}.html.j2"

        result = {
            "text": render_template(text_spec, ctx),
            "html": render_template(html_spec, ctx),
        }
        logger.debug(
            "render_message_templates: channel=%s text_len=%s html_len=%s",
            channel,
            len(result["text"] or ""),
            len(result["html"] or ""),
        )
        return result
