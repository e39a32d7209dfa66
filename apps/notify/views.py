"""
Views for the notify app.

Provides the recent-notification feed and channel test endpoints.
"""

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.notify.dispatcher import NotificationDispatcher
from apps.notify.drivers import DRIVER_REGISTRY
from apps.notify.feed import get_feed
from apps.notify.services import build_test_notification

logger = logging.getLogger(__name__)


class RecentNotificationsView(View):
    """
    Recent notifications sent by this process, newest first.

    GET /notify/recent/?limit=20&kind=alert
    """

    def get(self, request):
        limit = request.GET.get("limit")
        kind = request.GET.get("kind") or None
        try:
            limit = int(limit) if limit else None
        except ValueError:
            return JsonResponse({"status": "error", "message": "limit must be an integer"}, status=400)
        if limit is not None and limit < 1:
            return JsonResponse({"status": "error", "message": "limit must be positive"}, status=400)

        entries = get_feed().recent(limit=limit, kind=kind)
        return JsonResponse(
            {
                "status": "ok",
                "count": len(entries),
                "notifications": [entry.to_dict() for entry in entries],
            }
        )


@method_decorator(csrf_exempt, name="dispatch")
class ChannelTestView(View):
    """
    Send a test notification through one channel.

    POST /notify/test/<channel>/

    Optional JSON body:
    {
        "title": "Test Alert",
        "severity": "medium",
        "config": {...}   // transport config overriding the stored one
    }
    """

    def post(self, request, channel):
        if channel not in DRIVER_REGISTRY:
            return JsonResponse(
                {
                    "status": "error",
                    "message": f"Unknown channel: {channel}",
                    "available": list(DRIVER_REGISTRY.keys()),
                },
                status=400,
            )

        payload = {}
        if request.body:
            try:
                payload = json.loads(request.body)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning(f"Invalid JSON payload: {e}")
                return JsonResponse(
                    {"status": "error", "message": "Invalid JSON payload"},
                    status=400,
                )
            if not isinstance(payload, dict):
                return JsonResponse(
                    {"status": "error", "message": "JSON body must be an object"},
                    status=400,
                )

        notification = build_test_notification(
            title=payload.get("title", "Test Alert"),
            severity=payload.get("severity", "medium"),
        )
        configs = {channel: payload["config"]} if payload.get("config") else None
        result = NotificationDispatcher(configs=configs).dispatch(notification, [channel])

        get_feed().push(
            "test",
            notification.title,
            f"Test notification via {channel}",
            severity=notification.severity,
            data=result.to_dict(),
        )

        outcome = result.outcomes[channel]
        return JsonResponse(
            {
                "status": "success" if outcome.success else "error",
                "channel": channel,
                "message_id": outcome.message_id,
                "error": outcome.error,
            },
            status=200 if outcome.success else 502,
        )
