"""Checksums binding a destination URL to the site's signing key.

A checksum differs from a nonce in that the same URL always produces the
same value regardless of who asks for it. Its only purpose is to prove that
this site produced the redirect link, so that the redirect endpoint can send
visitors anywhere without becoming an open redirect.
"""

from __future__ import annotations

from django.utils.crypto import constant_time_compare, salted_hmac

from .keys import SigningKeyProvider, StaticKeyProvider, default_key_provider

CHECKSUM_LENGTH = 10

# Namespaces the HMAC so the key could never produce a value that is valid
# for another use of salted_hmac.
KEY_SALT = 'embed_redirects.signing.checksum'


class Signer:
    """Compute and verify checksums with a keyed hash."""

    def __init__(self, key_provider: SigningKeyProvider | None = None, *, length: int = CHECKSUM_LENGTH) -> None:
        self.key_provider = key_provider or default_key_provider
        self.length = length

    def pinned(self) -> Signer:
        """Return a signer that reuses the current key for every checksum.

        Loading the key is a database query; a rewrite pass signing many
        links reads it once through the pinned signer.
        """

        key = self.key_provider.get_or_create_key()
        return Signer(StaticKeyProvider(key), length=self.length)

    def sign(self, destination: str) -> str:
        """Return the checksum for ``destination`` under the current key."""

        key = self.key_provider.get_or_create_key()
        digest = salted_hmac(KEY_SALT, destination, secret=key, algorithm='sha256').hexdigest()
        return digest[:self.length].lower()

    def verify(self, destination: str, checksum: object) -> bool:
        """Return ``True`` when ``checksum`` matches ``destination``.

        Checksums are case insensitive. Anything that is not a string, or
        that differs in length or content, simply fails.
        """

        if not isinstance(destination, str) or not isinstance(checksum, str):
            return False
        return constant_time_compare(checksum.lower(), self.sign(destination))


def create_checksum(url: str) -> str:
    """Return the checksum for ``url`` using the default key provider."""

    return Signer().sign(url)


def validate_checksum(url: str, checksum: object) -> bool:
    """Validate ``checksum`` for ``url`` using the default key provider."""

    return Signer().verify(url, checksum)
