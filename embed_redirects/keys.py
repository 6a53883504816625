"""Storage of the secret used to sign redirect checksums.

The key is generated lazily the first time anything asks for it and is kept
in the :class:`~embed_redirects.models.Option` table. It is deliberately
separate from ``settings.SECRET_KEY``: rotating one must not affect the
other, and changing this key invalidates every signed link already handed
out.
"""

from __future__ import annotations

import logging
import string

from django.db import DatabaseError
from django.utils.crypto import get_random_string

from .exceptions import ConfigurationError
from .models import Option

logger = logging.getLogger(__name__)

SALT_OPTION_NAME = 'embed_redirects_salt'
SALT_LENGTH = 64
SALT_ALPHABET = string.ascii_letters + string.digits + '!@#$%^&*()-_[]{}<>~`+=,.;:/?|'


def generate_key(length: int = SALT_LENGTH) -> str:
    """Return a fresh random key using letters, digits and punctuation."""

    return get_random_string(length, SALT_ALPHABET)


class SigningKeyProvider:
    """Get-or-create access to the signing key.

    ``Option.objects.get_or_create`` leans on the unique constraint on
    ``Option.name``: when two requests race to create the first key, the
    losing insert raises ``IntegrityError`` inside Django and the stored
    winner is read back instead. At most one key is ever committed.
    """

    def __init__(self, option_name: str = SALT_OPTION_NAME) -> None:
        self.option_name = option_name

    def get_or_create_key(self) -> str:
        try:
            option, created = Option.objects.get_or_create(
                name=self.option_name,
                defaults={'value': generate_key(), 'autoload': False},
            )
        except DatabaseError as exc:
            logger.error('Unable to load or store the redirect signing key: %s', exc)
            raise ConfigurationError('The redirect signing key could not be persisted.') from exc

        if created:
            logger.info('Generated a new redirect signing key.')
        if not option.value:
            raise ConfigurationError('The stored redirect signing key is empty.')
        return option.value


class StaticKeyProvider:
    """Hands out a key that was already loaded, without touching storage."""

    def __init__(self, key: str) -> None:
        self.key = key

    def get_or_create_key(self) -> str:
        return self.key


default_key_provider = SigningKeyProvider()
