from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.utils import timezone

from ..managers import IdempotencyRecordManager


# ---------- Idempotency record ----------
# Cached outcome of a command, keyed by the client's idempotency key.
# A retry with the same key gets the stored result back instead of
# running the command a second time.
class IdempotencyRecord(models.Model):
    # Unique: two concurrent inserts for one key cannot both commit
    idempotency_key = models.CharField(max_length=255, unique=True)
    # Serialised result (Decimals/dates/UUIDs as strings)
    result = models.JSONField(encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField()

    objects = IdempotencyRecordManager()

    class Meta:
        indexes = [models.Index(fields=["expires_at"], name="idempotency_expires_idx")]

    def __str__(self):
        return f"{self.idempotency_key} (expires {self.expires_at:%Y-%m-%d %H:%M})"

    def is_expired(self, now=None):
        return (now or timezone.now()) >= self.expires_at
