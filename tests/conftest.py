"""Pytest configuration shared across test modules."""

import os

import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "embed_redirects_site.settings")
os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_DEBUG", "true")


@pytest.fixture(autouse=True)
def _clear_throttle_buckets():
    """Keep sliding-window buckets from leaking between tests."""

    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


class StubKeyProvider:
    """Key provider returning a fixed key, for tests that need no database."""

    def __init__(self, key: str = "k" * 64) -> None:
        self.key = key

    def get_or_create_key(self) -> str:
        return self.key
