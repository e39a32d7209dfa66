"""Custom Django admin app configuration."""

from django.contrib.admin.apps import AdminConfig


class PipelineHealthAdminConfig(AdminConfig):
    default_site = "config.admin.PipelineHealthAdminSite"
