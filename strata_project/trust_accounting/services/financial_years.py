import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from ..exceptions import NotFoundError, PeriodOverlap
from ..models import FinancialYear, Scheme
from .audit import log_action
from .validation import to_amount, to_date

logger = logging.getLogger(__name__)


def list_financial_years(scheme):
    """Newest first."""
    return list(FinancialYear.objects.for_scheme(scheme).order_by("-start_date"))


def get_current_financial_year(scheme):
    return FinancialYear.objects.for_scheme(scheme).filter(is_current=True).first()


def financial_year_for_date(scheme, day):
    """
    A date belongs to the year whose inclusive range contains it.
    Returns None when no year covers the date.
    """
    day = to_date(day)
    return (
        FinancialYear.objects.for_scheme(scheme)
        .filter(start_date__lte=day, end_date__gte=day)
        .first()
    )


def _get_year(year_id, lock=False):
    qs = FinancialYear.objects.select_for_update() if lock else FinancialYear.objects
    try:
        return qs.get(pk=year_id)
    except (FinancialYear.DoesNotExist, ValueError, TypeError):
        raise NotFoundError("FinancialYear", year_id)


def _check_dates(start_date, end_date):
    if end_date <= start_date:
        raise ValidationError("End date must be after start date")


def _check_overlap(scheme, start_date, end_date, exclude_id=None):
    # Two ranges overlap when each starts before the other ends
    clash = FinancialYear.objects.for_scheme(scheme).filter(
        start_date__lt=end_date, end_date__gt=start_date
    )
    if exclude_id is not None:
        clash = clash.exclude(pk=exclude_id)
    clash = clash.order_by("start_date").first()
    if clash is not None:
        raise PeriodOverlap(clash.year_label)


def create_financial_year(scheme, data, user=None) -> FinancialYear:
    """
    Add a financial year to `scheme`.
    The scheme's first year is always made current.
    """
    start_date = to_date(data.get("start_date"), "start_date")
    end_date = to_date(data.get("end_date"), "end_date")
    _check_dates(start_date, end_date)

    with transaction.atomic():
        # Serialise year creation per scheme so overlap checks see each other
        Scheme.objects.select_for_update().get(pk=scheme.pk)
        _check_overlap(scheme, start_date, end_date)
        is_first = not FinancialYear.objects.for_scheme(scheme).exists()

        year = FinancialYear(
            scheme=scheme,
            year_label=(data.get("year_label") or "").strip(),
            start_date=start_date,
            end_date=end_date,
            admin_opening_balance=to_amount(
                data.get("admin_opening_balance", 0), "admin_opening_balance"
            ),
            capital_opening_balance=to_amount(
                data.get("capital_opening_balance", 0), "capital_opening_balance"
            ),
            is_current=is_first,
        )
        year.save()
        log_action(
            action="create",
            instance=year,
            user=user,
            changes={
                "year_label": year.year_label,
                "start_date": start_date,
                "end_date": end_date,
                "is_current": is_first,
            },
        )

    logger.info(
        "Financial year created",
        extra={"scheme_id": scheme.pk, "year_label": year.year_label},
    )
    return year


def update_financial_year(year_id, data, user=None) -> FinancialYear:
    with transaction.atomic():
        year = _get_year(year_id, lock=True)

        start_date = to_date(data.get("start_date", year.start_date), "start_date")
        end_date = to_date(data.get("end_date", year.end_date), "end_date")
        _check_dates(start_date, end_date)
        _check_overlap(year.scheme, start_date, end_date, exclude_id=year.pk)

        year.start_date = start_date
        year.end_date = end_date
        if "year_label" in data:
            year.year_label = (data["year_label"] or "").strip()
        for field in ("admin_opening_balance", "capital_opening_balance"):
            if field in data:
                setattr(year, field, to_amount(data[field], field))
        year.save()
        log_action(action="update", instance=year, user=user, changes=dict(data))
    return year


def set_current_financial_year(year_id, user=None) -> FinancialYear:
    """
    Make one year current and unset every other year of its scheme,
    as a single unit.
    """
    with transaction.atomic():
        year = _get_year(year_id)
        # Lock all years of the scheme before flipping flags
        list(
            FinancialYear.objects.select_for_update()
            .filter(scheme_id=year.scheme_id)
            .values_list("pk", flat=True)
        )
        FinancialYear.objects.filter(
            scheme_id=year.scheme_id, is_current=True
        ).exclude(pk=year.pk).update(is_current=False)

        year.refresh_from_db()
        if not year.is_current:
            year.is_current = True
            year.save(update_fields=["is_current"])
        log_action(action="set_current", instance=year, user=user)

    logger.info(
        "Current financial year changed",
        extra={"scheme_id": year.scheme_id, "year_label": year.year_label},
    )
    return year
