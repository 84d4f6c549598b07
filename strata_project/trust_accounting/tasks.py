import logging

from celery import shared_task
from django.db import OperationalError

from .exceptions import ImbalanceError

logger = logging.getLogger(__name__)


# Proposals are recomputed from the database on every attempt,
# so a retry never double-matches
@shared_task(
    bind=True,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    max_retries=3,
)
def auto_match_statement(self, statement_id, user_id=None):
    # import lazily to avoid circular imports at module import time
    from django.contrib.auth import get_user_model

    from .models import BankStatement
    from .services.reconciliation import auto_match

    statement = BankStatement.objects.get(pk=statement_id)
    user = get_user_model().objects.filter(pk=user_id).first() if user_id else None
    result = auto_match(statement, user=user)
    return {
        "matched": result.matched,
        "ambiguous": list(result.ambiguous_line_ids),
        "unmatched": list(result.unmatched_line_ids),
    }


@shared_task
def verify_trial_balance(scheme_id):
    """Nightly check that the scheme's ledger still balances."""
    from .models import Scheme
    from .services.reports import trial_balance

    scheme = Scheme.objects.get(pk=scheme_id)
    try:
        report = trial_balance(scheme, raise_on_imbalance=True)
    except ImbalanceError as exc:
        logger.error(
            "Scheduled trial balance check failed",
            extra={
                "scheme_id": scheme_id,
                "total_debits": str(exc.total_debits),
                "total_credits": str(exc.total_credits),
            },
        )
        return {"is_balanced": False}
    return {
        "is_balanced": True,
        "total_debits": str(report.total_debits),
        "total_credits": str(report.total_credits),
    }
