from django.db import models


class DocumentSequence(models.Model):
    """Counter behind invoice and payment numbers.

    One row per (prefix, year, month); the numbering service locks the
    row while it takes the next value, so concurrent generators queue
    instead of colliding.
    """
    prefix = models.CharField(max_length=8)
    year = models.PositiveSmallIntegerField()
    month = models.PositiveSmallIntegerField()
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["prefix", "year", "month"], name="uq_document_sequence_scope"
            )
        ]

    def __str__(self):
        return f"{self.prefix}-{self.year}{self.month:02d}: {self.last_value}"
