"""Base abstract models shared by the ledger apps.

Provides:
- ``BaseModel``: UUIDv7 primary key + created_at / updated_at timestamps.
- ``AppendOnlyModel``: Extends BaseModel for audit records that may be
  inserted but never edited or deleted afterwards.

UUIDv7 keys are opaque to clients but time ordered, which keeps index
locality on inserts and makes ids collision resistant across processes.
"""

from __future__ import annotations

import uuid6
from django.db import models

from modules.core.exceptions import ImmutableRecordError

# ---------------------------------------------------------------------------
# BaseModel
# ---------------------------------------------------------------------------


class BaseModel(models.Model):
    """Abstract base with UUIDv7 PK and timestamp bookkeeping."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid6.uuid7,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Append-only records
# ---------------------------------------------------------------------------


class AppendOnlyModel(BaseModel):
    """Abstract model for records that are immutable once persisted.

    - ``save()`` only inserts; saving an already persisted row raises.
    - ``delete()`` always raises.

    Bulk ``QuerySet.update()`` / ``delete()`` bypass these guards; the
    repositories never issue them for append-only tables.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise ImmutableRecordError(
                f"{self._meta.label} {self.pk} is append-only and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, using=None, keep_parents=False):
        raise ImmutableRecordError(
            f"{self._meta.label} {self.pk} is append-only and cannot be deleted."
        )
