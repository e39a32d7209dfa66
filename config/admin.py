"""Custom admin site for the pipeline health console."""

import json

from django.contrib.admin import AdminSite
from django.utils.html import format_html


class PipelineHealthAdminSite(AdminSite):
    site_header = "Pipeline Health"
    site_title = "Pipeline Health"
    index_title = "Dashboard"


def prettify_json(value) -> str:
    """Render a JSON field as an indented <pre> block for read-only admin fields."""
    if value in (None, "", {}, []):
        return "-"
    return format_html(
        '<pre style="white-space: pre-wrap; max-width: 800px;">{}</pre>',
        json.dumps(value, indent=2, sort_keys=True, default=str),
    )
