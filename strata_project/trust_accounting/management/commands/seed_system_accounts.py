from django.core.management.base import BaseCommand

from trust_accounting.services.accounts import seed_system_accounts


class Command(BaseCommand):
    help = "Create any missing organisation-wide system accounts (safe to re-run)."

    def handle(self, *args, **options):
        created = seed_system_accounts()
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created {created} system account(s)."))
        else:
            self.stdout.write(self.style.NOTICE("System accounts already up to date."))
