"""Database models for the embed_redirects app.

The app needs a single durable configuration value, the secret used to sign
redirect checksums. It is kept in a small name/value option table so the
unique constraint on ``name`` can arbitrate concurrent first writes.
"""

from __future__ import annotations

from django.db import models


class Option(models.Model):
    """A named configuration value stored in the database."""

    name = models.CharField(max_length=191, unique=True)
    value = models.TextField()
    # Autoloaded options may be read in bulk by other parts of a site;
    # secrets must never be.
    autoload = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover - convenience display
        return self.name
