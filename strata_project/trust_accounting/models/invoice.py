from decimal import Decimal
from django.db import models
from ..managers import SchemeManager
from .scheme import Scheme
from .transaction import TrustTransaction


class MaintenanceInvoice(models.Model):
    """
    Contractor invoice raised against a maintenance request.
    Only the fields the ledger reads and stamps live here.
    """

    scheme = models.ForeignKey(
        Scheme, on_delete=models.PROTECT, related_name="maintenance_invoices"
    )
    invoice_number = models.CharField(max_length=100, blank=True, default="")
    # Short job title, used in the payment description
    title = models.CharField(max_length=255, blank=True, default="")
    payee_name = models.CharField(max_length=255)
    invoice_amount = models.DecimalField(max_digits=14, decimal_places=2)
    gst_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    # Stamped once the payment transaction exists
    payment_reference = models.ForeignKey(
        TrustTransaction,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="paid_invoices",
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    objects = SchemeManager()

    class Meta:
        ordering = ("-id",)

    def __str__(self):
        return f"Invoice {self.invoice_number or self.pk} – {self.payee_name}"

    @property
    def is_paid(self):
        return self.paid_at is not None
