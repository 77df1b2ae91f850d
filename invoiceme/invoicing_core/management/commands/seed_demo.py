import datetime
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from invoicing_core.models import Customer, LineItem
from invoicing_core.services import (RecordPaymentRequest, create_customer,
                                     create_invoice, record_payment,
                                     send_invoice)


class Command(BaseCommand):
    help = "Seeds the database with a demo customer, a sent invoice and a partial payment."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--customer-name",  # Define flag
            default="Demo Ltd",
            help="Name of the demo customer (default: Demo Ltd)",
        )
        parser.add_argument(
            "--email", default="billing@demo.example", help="Billing email of the demo customer."
        )
        parser.add_argument(
            "--user", default="demo", help="User id recorded on the demo payment."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        name = options["customer_name"]
        email = options["email"].strip().lower()
        user = options["user"]

        self.stdout.write(self.style.NOTICE(f"Seeding demo data for {name}..."))

        # Reuse the customer on repeated runs
        customer = Customer.objects.active().filter(email=email).first()
        if customer is None:
            customer = create_customer(name=name, email=email, user=user)

        today = datetime.date.today()
        invoice = create_invoice(
            customer_id=customer.pk,
            issue_date=today,
            due_date=today + datetime.timedelta(days=30),
            payment_terms="Net 30",
            line_items=[
                # 5 x 100.00, 10% discount, 8% tax → 486.00
                LineItem(
                    description="Consulting hours",
                    quantity=5,
                    unit_price=Decimal("100.00"),
                    discount_percent=Decimal("0.10"),
                    tax_rate=Decimal("0.08"),
                ),
            ],
            user=user,
        )
        send_invoice(invoice.pk, user=user)

        result = record_payment(
            RecordPaymentRequest(
                invoice_id=invoice.pk,
                payment_date=today,
                amount=Decimal("150.00"),
                payment_method="BANK_TRANSFER",
                reference="DEMO-0001",
            ),
            user_id=user,
        )

        self.stdout.write(self.style.SUCCESS(
            f"Created {result.invoice_number} for {result.customer_name}: "
            f"balance {result.remaining_balance} ({result.invoice_status})"
        ))
