from django.db import models


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Gives accountability and traceability across the billing core
    # Who performed the action
    # (blank when the action was automated, e.g. a Celery task)
    actor = models.CharField(max_length=255, blank=True, default="")
    # Type of event being logged
    action = models.CharField(
        max_length=50
    )  # e.g. InvoiceCreated, InvoiceStatusChanged, PaymentRecorded
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Invoice", "Payment", "Customer")
    # The primary key (or identifier) of the object
    object_id = models.CharField(max_length=100)
    # Event payload / before-after details, in JSON format
    changes = models.JSONField(null=True, blank=True)
    # Timestamp when the event was logged
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        # Filter logs quickly
        indexes = [
            models.Index(fields=["object_type", "object_id"], name="auditlog_object_idx"),
            models.Index(fields=["created_at"], name="auditlog_created_at_idx"),
        ]

    def __str__(self):
        time = self.created_at
        return f"[{time:%Y-%m-%d %H:%M}] {self.actor} {self.action} {self.object_type}({self.object_id})"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
