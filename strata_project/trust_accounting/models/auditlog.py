from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from ..managers import SchemeManager
from .scheme import Scheme


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    """Who changed which ledger record, and how."""

    # Nullable for organisation-wide events (e.g. seeding default accounts)
    scheme = models.ForeignKey(
        Scheme,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="audit_entries",
    )
    # Nullable when the action was automated (Celery task, data migration)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # e.g. record, void, match, unmatch, reconcile
    action = models.CharField(max_length=50)
    # e.g. "TrustTransaction", "BankStatementLine"
    object_type = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    changes = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SchemeManager()

    class Meta:
        indexes = [
            models.Index(fields=["scheme", "created_at"], name="audit_scheme_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ]
        ordering = ("-created_at",)

    def __str__(self):
        return (
            f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} "
            f"{self.action} {self.object_type}({self.object_id})"
        )
