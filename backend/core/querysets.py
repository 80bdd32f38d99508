from django.db import models


class AppendOnlyQuerySet(models.QuerySet):
    """QuerySet that refuses bulk updates and deletes (audit trail, ledger)."""

    def update(self, **kwargs):
        raise ValueError(
            f"{self.model.__name__} entries are append-only. Updates are not allowed."
        )

    def delete(self):
        raise ValueError(
            f"{self.model.__name__} entries are append-only. Deletions are not allowed."
        )
