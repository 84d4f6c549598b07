from django.db import models


# ---------- Tenant / Organisation ----------
class Organisation(models.Model):
    """Strata management business (tenant) that runs one or more schemes."""

    name = models.CharField(max_length=200)
    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two organisations can share a slug
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


# ---------- Scheme ----------
class Scheme(models.Model):
    """
    One strata scheme (strata plan). Every ledger row belongs to exactly one
    scheme; the authorization layer resolves the scheme before calling in.
    """

    organisation = models.ForeignKey(
        Organisation,
        on_delete=models.PROTECT,  # keep trust records when an org is removed
        related_name="schemes",
    )
    name = models.CharField(max_length=200)
    # Plan number issued by the land titles office, e.g. "SP 12345"
    scheme_number = models.CharField(max_length=50)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["organisation", "scheme_number"],
                name="uq_organisation_scheme_number",
            )
        ]
        ordering = ("organisation", "name")

    def __str__(self):
        return f"{self.scheme_number} {self.name}"
