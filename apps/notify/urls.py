"""
URL configuration for the notify app.
"""

from django.urls import path

from apps.notify.views import ChannelTestView, RecentNotificationsView

app_name = "notify"

urlpatterns = [
    # Recent-notification feed
    path("recent/", RecentNotificationsView.as_view(), name="recent"),
    # Channel test
    path("test/<str:channel>/", ChannelTestView.as_view(), name="test"),
]
