"""
Celery tasks for gradebook app.
Handles the backend recalculation that follows a mark update.
"""
import logging

from celery import shared_task

from core.backend import BackendError, get_backend_client
from . import config


logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=config.TASK_MAX_RETRIES,
    default_retry_delay=config.TASK_RETRY_DELAY,
)
def recalculate_averages(self, record_id):
    """
    Ask the backend to recompute the stored averages of one record.

    Queued after every mark update; the caller does not wait for it.
    """
    client = get_backend_client()
    try:
        client.calculate_averages(record_id)
    except BackendError as e:
        if e.status_code is not None and e.status_code < 500:
            # Non-retryable - record missing or request rejected
            logger.error(f"Backend rejected recalculation for record {record_id}: {e}")
            return None
        # Transient error - retry with exponential backoff
        logger.warning(
            f"Recalculation for record {record_id} failed, "
            f"retry {self.request.retries + 1}/{self.max_retries}: {e}"
        )
        raise self.retry(exc=e, countdown=config.TASK_RETRY_DELAY * (2 ** self.request.retries))

    logger.info(f"Recalculated averages for record {record_id}")
    return record_id
