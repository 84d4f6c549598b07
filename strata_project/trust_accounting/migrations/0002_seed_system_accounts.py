from django.db import migrations

from trust_accounting.defaults import SYSTEM_ACCOUNTS


def seed_system_accounts(apps, schema_editor):
    # Historical model: no custom save()/managers here
    Account = apps.get_model("trust_accounting", "Account")
    for code, name, account_type, fund_type in SYSTEM_ACCOUNTS:
        Account.objects.get_or_create(
            scheme=None,
            code=code,
            defaults={
                "name": name,
                "account_type": account_type,
                "fund_type": fund_type,
                "is_system": True,
                "is_active": True,
            },
        )


def unseed_system_accounts(apps, schema_editor):
    Account = apps.get_model("trust_accounting", "Account")
    codes = [code for code, *_ in SYSTEM_ACCOUNTS]
    Account.objects.filter(scheme__isnull=True, is_system=True, code__in=codes).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("trust_accounting", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_system_accounts, unseed_system_accounts),
    ]
