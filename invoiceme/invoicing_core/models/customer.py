import uuid

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import models
from django.utils import timezone

from ..managers import CustomerManager

ADDRESS_FIELDS = ("street", "city", "state", "postal_code", "country")


# ---------- Customer ----------
# Represents client who receives invoices
class Customer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # The customer's legal or trade name
    name = models.CharField(max_length=255)

    # Billing contact, unique across customers
    email = models.EmailField(max_length=255, unique=True)
    phone = models.CharField(max_length=50, blank=True, default="")

    # Postal address: either all parts are set or none are
    street = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    state = models.CharField(max_length=50, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    country = models.CharField(max_length=100, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Soft delete: invoices keep pointing at the row
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = CustomerManager()

    class Meta:
        indexes = [
            models.Index(fields=["name"], name="customer_name_idx"),
            models.Index(fields=["deleted_at"], name="customer_deleted_at_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @property
    def address(self):
        parts = [getattr(self, f) for f in ADDRESS_FIELDS]
        if not any(parts):
            return None
        return f"{self.street}, {self.city}, {self.state} {self.postal_code}, {self.country}"

    def soft_delete(self):
        if self.is_deleted:
            raise ValidationError(f"Customer already deleted with id: {self.pk}")
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])

    def clean(self):
        # Normalise before validating
        self.name = (self.name or "").strip()
        self.email = (self.email or "").strip().lower()

        if not self.name:
            raise ValidationError({"name": "Name is required"})
        if not self.email:
            raise ValidationError({"email": "Email is required"})
        validate_email(self.email)

        # Partial addresses are rejected
        filled = [f for f in ADDRESS_FIELDS if (getattr(self, f) or "").strip()]
        if filled and len(filled) != len(ADDRESS_FIELDS):
            missing = [f for f in ADDRESS_FIELDS if f not in filled]
            raise ValidationError(
                {f: f"{f.replace('_', ' ').capitalize()} is required" for f in missing}
            )

        return super().clean()

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
