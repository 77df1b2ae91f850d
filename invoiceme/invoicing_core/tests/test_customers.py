from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import CustomerNotFound
from ..models import AuditLog, Customer
from ..services import create_customer, delete_customer, update_customer


class CustomerTests(TestCase):
    def test_create_normalises_name_and_email(self):
        customer = create_customer(name="  Acme Corp ", email=" Billing@Acme.Example ")
        self.assertEqual(customer.name, "Acme Corp")
        self.assertEqual(customer.email, "billing@acme.example")
        self.assertIsNone(customer.address)
        self.assertTrue(AuditLog.objects.filter(action="CustomerCreated", object_id=str(customer.pk)).exists())

    def test_email_must_be_valid_and_unique(self):
        create_customer(name="Acme", email="billing@acme.example")
        with self.assertRaises(ValidationError):
            create_customer(name="Acme Two", email="BILLING@acme.example")
        with self.assertRaises(ValidationError):
            create_customer(name="Broken", email="not-an-email")

    def test_name_required(self):
        with self.assertRaises(ValidationError):
            create_customer(name="   ", email="x@example.com")

    def test_address_is_all_or_nothing(self):
        with self.assertRaises(ValidationError) as ctx:
            create_customer(name="Acme", email="a@example.com", street="1 Main St", city="Springfield")
        self.assertIn("country", ctx.exception.message_dict)

        customer = create_customer(
            name="Acme", email="a@example.com", street="1 Main St", city="Springfield",
            state="IL", postal_code="62701", country="US",
        )
        self.assertEqual(customer.address, "1 Main St, Springfield, IL 62701, US")

    def test_partial_update(self):
        customer = create_customer(name="Acme", email="a@example.com", phone="555-0100")
        updated = update_customer(customer.pk, user="user-1", name="Acme Holdings")

        self.assertEqual(updated.name, "Acme Holdings")
        self.assertEqual(updated.phone, "555-0100")
        log = AuditLog.objects.get(action="CustomerUpdated")
        self.assertEqual(log.actor, "user-1")
        self.assertEqual(log.changes, {"name": {"from": "Acme", "to": "Acme Holdings"}})

    def test_update_rejects_unknown_fields(self):
        customer = create_customer(name="Acme", email="a@example.com")
        with self.assertRaisesMessage(ValidationError, "Unknown customer fields"):
            update_customer(customer.pk, balance="100")
        customer.refresh_from_db()
        self.assertEqual(customer.name, "Acme")

    def test_soft_delete(self):
        customer = create_customer(name="Acme", email="a@example.com")
        delete_customer(customer.pk)

        customer.refresh_from_db()
        self.assertTrue(customer.is_deleted)
        # the row stays, but lookups skip it
        self.assertIsNone(Customer.objects.find_active(customer.pk))
        with self.assertRaises(CustomerNotFound):
            update_customer(customer.pk, name="Ghost")

        with self.assertRaisesMessage(ValidationError, "Customer already deleted"):
            delete_customer(customer.pk)

    def test_delete_unknown_customer(self):
        with self.assertRaises(CustomerNotFound):
            delete_customer("1f0e8a1c-0000-4000-8000-000000000000")
