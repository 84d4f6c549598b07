from typing import Optional

from ..models import AuditLog, Scheme


def log_action(
    *,
    action: str,
    instance,
    user=None,
    scheme: Optional[Scheme] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Runs inside the caller's atomic block, so a rolled back write leaves no entry.
    """

    if scheme is None:
        scheme = getattr(instance, "scheme", None)

    # Unsaved users (e.g. AnonymousUser) are not recorded
    if user is not None and not getattr(user, "pk", None):
        user = None

    return AuditLog.objects.create(
        scheme=scheme,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
