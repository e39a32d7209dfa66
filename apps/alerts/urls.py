"""
URL configuration for the alerts app.
"""

from django.urls import path

from apps.alerts.views import (
    AlertHistoryView,
    AlertRuleAcknowledgeView,
    AlertRuleHistoryView,
    AlertRuleListView,
    AlertRuleResetView,
    AlertRuleTestView,
)

app_name = "alerts"

urlpatterns = [
    path("rules/", AlertRuleListView.as_view(), name="rules"),
    path("rules/<int:rule_id>/history/", AlertRuleHistoryView.as_view(), name="rule_history"),
    path(
        "rules/<int:rule_id>/acknowledge/",
        AlertRuleAcknowledgeView.as_view(),
        name="rule_acknowledge",
    ),
    path("rules/<int:rule_id>/reset/", AlertRuleResetView.as_view(), name="rule_reset"),
    path("rules/<int:rule_id>/test/", AlertRuleTestView.as_view(), name="rule_test"),
    # Trigger history across all rules
    path("history/", AlertHistoryView.as_view(), name="history"),
]
