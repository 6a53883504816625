"""View decorators for embeddable pages."""

from __future__ import annotations

from functools import wraps

from django.http import HttpRequest
from django.views.decorators.clickjacking import xframe_options_exempt

EMBED_ATTR = 'is_embed'


def embed_view(view_func):
    """Mark a view as rendering an embed.

    Outbound links in content rendered for the request are rewritten to
    verified redirects, and the response may be framed by other sites.
    """

    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        setattr(request, EMBED_ATTR, True)
        return view_func(request, *args, **kwargs)

    return xframe_options_exempt(wrapper)


def is_embed_request(request: HttpRequest | None) -> bool:
    """Default embed policy: ``True`` inside views wrapped by :func:`embed_view`."""

    return bool(getattr(request, EMBED_ATTR, False))
