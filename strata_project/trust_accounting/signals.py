from django.core.exceptions import ValidationError
from django.db.models.signals import pre_delete, pre_save
from django.dispatch import receiver

from .exceptions import (AccountInUse, ImmutableRecordError,
                         StatementFinalized, SystemAccountImmutable)
from .models import (Account, BankStatement, BankStatementLine,
                     TransactionLine, TrustTransaction)

"""Accounts are deactivated, never deleted."""


# pre_delete fires just before Django deletes the instance
@receiver(pre_delete, sender=Account)
def prevent_delete_account(sender, instance, **kwargs):
    if instance.is_system:
        raise SystemAccountImmutable("System accounts cannot be deleted")
    line_count = TransactionLine.objects.filter(account=instance).count()
    if line_count:
        raise AccountInUse(line_count, kind="transaction line")
    raise ValidationError("Accounts are deactivated, not deleted.")


"""Transactions are voided (soft deleted) so audit history survives."""


@receiver(pre_delete, sender=TrustTransaction)
def prevent_delete_transaction(sender, instance, **kwargs):
    raise ImmutableRecordError("Transactions are voided, not deleted.")


"""Lines of a reconciled statement are frozen."""


def _statement_is_reconciled(statement_id):
    return BankStatement.objects.filter(pk=statement_id, status="reconciled").exists()


@receiver(pre_save, sender=BankStatementLine)
def prevent_change_to_reconciled_line(sender, instance, **kwargs):
    if instance.statement_id and _statement_is_reconciled(instance.statement_id):
        raise StatementFinalized()


@receiver(pre_delete, sender=BankStatementLine)
def prevent_delete_reconciled_line(sender, instance, **kwargs):
    if _statement_is_reconciled(instance.statement_id):
        raise StatementFinalized()


"""A transaction matched on a reconciled statement stays reconciled."""


@receiver(pre_save, sender=TrustTransaction)
def prevent_unreconcile_after_finalization(sender, instance, **kwargs):
    if instance.pk is None or instance.is_reconciled:
        return
    if BankStatementLine.objects.filter(
        matched_transaction_id=instance.pk, statement__status="reconciled"
    ).exists():
        raise StatementFinalized()
