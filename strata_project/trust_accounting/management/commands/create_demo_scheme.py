import datetime
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils.text import slugify

from trust_accounting.models import Account, Organisation, Scheme
from trust_accounting.services.accounts import seed_system_accounts
from trust_accounting.services.financial_years import create_financial_year
from trust_accounting.services.ledger import record_transaction


class Command(BaseCommand):
    help = "Create a demo organisation and scheme with a financial year and sample receipts."

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--organisation",
            default="Demo Strata Management",
            help="Name of the demo organisation.",
        )
        parser.add_argument(
            "--scheme-number",
            default="SP 12345",
            help="Strata plan number of the demo scheme.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        org_name = options["organisation"]
        scheme_number = options["scheme_number"]

        seed_system_accounts()

        organisation, _ = Organisation.objects.get_or_create(
            slug=slugify(org_name) or "organisation",
            defaults={"name": org_name},
        )
        scheme, created = Scheme.objects.get_or_create(
            organisation=organisation,
            scheme_number=scheme_number,
            defaults={"name": f"{scheme_number} Harbour View"},
        )
        if not created:
            self.stdout.write(self.style.NOTICE(f"Scheme {scheme_number} already exists."))
            return

        # Australian financial year containing today
        today = datetime.date.today()
        start_year = today.year if today.month >= 7 else today.year - 1
        create_financial_year(
            scheme,
            {
                "year_label": f"{start_year}/{str(start_year + 1)[-2:]}",
                "start_date": datetime.date(start_year, 7, 1),
                "end_date": datetime.date(start_year + 1, 6, 30),
                "admin_opening_balance": Decimal("5000.00"),
                "capital_opening_balance": Decimal("20000.00"),
            },
        )

        admin_levy = Account.objects.defaults().get(code="4100")
        capital_levy = Account.objects.defaults().get(code="4200")
        for lot in range(1, 5):
            record_transaction(
                scheme,
                {
                    "transaction_type": "receipt",
                    "fund_type": "admin",
                    "category": admin_levy,
                    "transaction_date": today,
                    "amount": Decimal("450.00"),
                    "description": f"Quarterly admin levy - Lot {lot}",
                    "lot_reference": f"Lot {lot}",
                    "payment_method": "bpay",
                },
            )
            record_transaction(
                scheme,
                {
                    "transaction_type": "receipt",
                    "fund_type": "capital_works",
                    "category": capital_levy,
                    "transaction_date": today,
                    "amount": Decimal("150.00"),
                    "description": f"Quarterly capital works levy - Lot {lot}",
                    "lot_reference": f"Lot {lot}",
                    "payment_method": "bpay",
                },
            )

        self.stdout.write(self.style.SUCCESS(f"Demo scheme {scheme_number} created."))
