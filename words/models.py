from django.conf import settings
from django.db import models
from django.utils import timezone

# Global uniqueness: no two words may share word_lower, whoever owns them.
WORD_LOWER_UNIQUE = models.UniqueConstraint(fields=["word_lower"], name="uq_word_lower")

MAX_WORD_LENGTH = 255


class Word(models.Model):
    user = models.ForeignKey(                                        # Owner (no DB-level FK, owner may vanish)
        settings.AUTH_USER_MODEL,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="words",
    )
    word = models.CharField(max_length=MAX_WORD_LENGTH)                          # As submitted (trimmed)
    word_lower = models.CharField(max_length=MAX_WORD_LENGTH)                    # Lowercased, used for uniqueness
    added_at = models.DateTimeField(default=timezone.now, db_index=True)  # Submission time (server-side)
    learned = models.BooleanField(default=False)
    notes = models.TextField(blank=True, default="")

    class Meta:
        constraints = [WORD_LOWER_UNIQUE]
        indexes = [
            models.Index(fields=["user", "added_at"], name="idx_word_user_added"),
        ]

    def __str__(self):
        return self.word
