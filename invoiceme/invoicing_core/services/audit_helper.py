from typing import Optional

from ..models import AuditLog


def log_action(
    *,
    action: str,
    object_type: str,
    object_id,
    actor: Optional[str] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """
    return AuditLog.objects.create(
        actor=actor or "",
        action=action,
        object_type=object_type,
        object_id=str(object_id),
        changes=changes,
    )
