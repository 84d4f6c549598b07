from django.db import models


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a scheme
# -----------------------------------------
class SchemeQuerySet(models.QuerySet):
    def for_scheme(self, scheme):  # Add queryset helper
        return self.filter(scheme=scheme)  # Apply filter


# Attach SchemeQuerySet to .objects
class SchemeManager(models.Manager.from_queryset(SchemeQuerySet)):
    pass


class AccountQuerySet(SchemeQuerySet):
    def active(self):
        return self.filter(is_active=True)

    # Organisation-wide defaults have no scheme
    def defaults(self):
        return self.filter(scheme__isnull=True)


class AccountManager(models.Manager.from_queryset(AccountQuerySet)):
    pass


class TransactionQuerySet(SchemeQuerySet):
    # Voided rows stay for audit history but never reach reports or matching
    def live(self):
        return self.filter(deleted_at__isnull=True)

    def unreconciled(self):
        return self.live().filter(is_reconciled=False)


class TransactionManager(models.Manager.from_queryset(TransactionQuerySet)):
    pass


class TransactionLineQuerySet(models.QuerySet):
    def live(self):
        return self.filter(transaction__deleted_at__isnull=True)

    def for_scheme(self, scheme):
        return self.filter(transaction__scheme=scheme)


class TransactionLineManager(models.Manager.from_queryset(TransactionLineQuerySet)):
    pass
