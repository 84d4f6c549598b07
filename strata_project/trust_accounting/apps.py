from django.apps import AppConfig


class TrustAccountingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "trust_accounting"
    verbose_name = "Trust accounting"

    # ensure receivers are registered
    def ready(self):
        import trust_accounting.signals  # noqa: F401
