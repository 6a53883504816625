"""Views for the embed_redirects app."""

from __future__ import annotations

from django.http import HttpRequest, HttpResponse

from .routing import match_request
from .validation import RedirectState, RedirectValidator, request_state

VALIDATOR_ATTR = 'redirect_validator'


def verified_redirect(request: HttpRequest, **route_params: str) -> HttpResponse:
    """Redirect to a checksum-verified destination or answer 404.

    Normally :class:`~embed_redirects.middleware.VerifiedRedirectMiddleware`
    has already validated the request and routed it here; this view
    validates again before redirecting. When the app URLconf route is hit
    without the middleware, both checks run here. The destination is always
    re-read from the raw request, never from the decoded ``route_params``.
    """

    validator = getattr(request, VALIDATOR_ATTR, None) or RedirectValidator()
    if request_state(request) is RedirectState.UNVALIDATED:
        validator.resolve(request, match_request(request))
    return validator.finalize(request)
