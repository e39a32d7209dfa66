"""Shared fixtures for notify tests."""

from datetime import datetime
from datetime import timezone as dt_tz

from apps.notify.drivers import AlertNotification

TRIGGERED_AT = datetime(2024, 1, 8, 10, 0, tzinfo=dt_tz.utc)


def make_notification(**overrides):
    """Return an AlertNotification for a failing pipeline, merged with overrides."""
    defaults = {
        "title": "Main build failing",
        "message": "Consecutive Failures greater than or equal to 3 (current: 3)",
        "severity": "high",
        "rule": {
            "id": 7,
            "name": "Main build failing",
            "description": "Three failures in a row on main",
            "condition_type": "consecutive_failures",
            "operator": ">=",
            "threshold": 3,
            "condition": "Consecutive Failures greater than or equal to 3",
        },
        "pipeline": {"id": 1, "name": "web-frontend", "provider": "github"},
        "build": {
            "id": 42,
            "external_id": "9001",
            "status": "failed",
            "branch": "main",
            "commit_hash": "abcdef1234567890",
            "commit_message": "Fix flaky test",
            "author": "dev",
            "duration": 125,
            "web_url": "https://ci.example.com/runs/9001",
        },
        "metric_value": 3,
        "dashboard_url": "https://dash.example.com",
        "triggered_at": TRIGGERED_AT,
    }
    defaults.update(overrides)
    return AlertNotification(**defaults)
