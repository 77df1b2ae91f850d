from datetime import timedelta

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ..models import IdempotencyRecord

logger = structlog.get_logger(__name__)

DEFAULT_TTL_HOURS = 24


def _ttl():
    return timedelta(hours=getattr(settings, "INVOICING_IDEMPOTENCY_TTL_HOURS", DEFAULT_TTL_HOURS))


def check_idempotency(key, result_type):
    """
    Return the cached result for key rebuilt as result_type, or None.
    Expired records are treated as absent.
    """
    if not key:
        return None
    record = IdempotencyRecord.objects.live(timezone.now()).filter(idempotency_key=key).first()
    if record is None:
        return None
    logger.info("idempotency_hit", idempotency_key=key)
    return result_type.from_dict(record.result)


def store_idempotency(key, result):
    """
    Cache result under key for the configured TTL.

    A live record with the same key makes the insert fail with
    IntegrityError; callers inside a transaction roll back and read the
    winner's result instead.
    """
    now = timezone.now()
    payload = result.to_dict() if hasattr(result, "to_dict") else result
    with transaction.atomic():
        # An expired record does not block reuse of its key
        IdempotencyRecord.objects.expired(now).filter(idempotency_key=key).delete()
        record = IdempotencyRecord.objects.create(
            idempotency_key=key,
            result=payload,
            created_at=now,
            expires_at=now + _ttl(),
        )
    logger.info("idempotency_stored", idempotency_key=key, expires_at=record.expires_at.isoformat())
    return record


def purge_expired_idempotency_records():
    """Delete every expired record; returns how many went."""
    deleted, _ = IdempotencyRecord.objects.expired(timezone.now()).delete()
    logger.info("idempotency_purged", deleted=deleted)
    return deleted
