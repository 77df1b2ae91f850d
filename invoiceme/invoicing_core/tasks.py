from celery import shared_task
import structlog

logger = structlog.get_logger(__name__)


@shared_task  # register this function as a Celery task
def purge_expired_idempotency_records():
    # import services lazily to avoid circular imports at module import time
    from .services.idempotency import purge_expired_idempotency_records as purge

    # Expired keys no longer protect anything; drop them
    deleted = purge()
    logger.info("idempotency_purge_task_finished", deleted=deleted)
    return deleted
