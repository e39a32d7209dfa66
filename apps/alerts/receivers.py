"""Signal receivers that run alert evaluation for completed builds."""

import logging

from django.conf import settings
from django.dispatch import receiver

from apps.pipelines.signals import build_completed

logger = logging.getLogger(__name__)


@receiver(build_completed, dispatch_uid="alerts.evaluate_completed_build")
def evaluate_completed_build(sender, build, **kwargs):
    """
    Evaluate alert rules for a build that just reached a terminal state.

    With ALERTS_ASYNC_EVALUATION the work is queued on Celery; if the broker
    is unreachable it runs inline instead. Errors never reach the ingestor.
    """
    if getattr(settings, "ALERTS_ASYNC_EVALUATION", False):
        try:
            from apps.alerts.tasks import evaluate_build_alerts

            evaluate_build_alerts.delay(build.pk)
            return
        except Exception as enqueue_err:
            logger.warning(
                "Celery alert evaluation enqueue failed; falling back to sync evaluation: %s",
                enqueue_err,
            )

    from apps.alerts.services import AlertEvaluator

    try:
        AlertEvaluator().evaluate_build(build)
    except Exception:
        logger.exception(f"Alert evaluation failed for build {build.pk}")
