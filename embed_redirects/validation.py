"""Two-stage validation of signed redirect requests.

Stage one runs when the request is routed: the destination and checksum are
checked and, if they hold, the request is parked in ``PENDING_REDIRECT`` and
its URLconf is swapped so that only the redirect view can answer it. Stage
two runs when the response is built and repeats the whole check against the
stored query variables, because other middleware gets to run in between.

Every failure looks the same from the outside: Django's ordinary 404.
"""

from __future__ import annotations

import enum
import logging
from urllib.parse import urlsplit

from django.http import Http404, HttpRequest, HttpResponse

from .emitter import RedirectEmitter
from .exceptions import ValidationFailure
from .routing import SignedRedirectRequest, extract_signed_request
from .sanitize import ALLOWED_SCHEMES, is_canonical_url
from .signing import Signer

logger = logging.getLogger(__name__)

STATE_ATTR = 'redirect_state'
QUERY_VARS_ATTR = 'redirect_query_vars'
REDIRECT_URLCONF = 'embed_redirects.redirect_urls'


class RedirectState(enum.Enum):
    UNVALIDATED = 'unvalidated'
    REJECTED = 'rejected'
    PENDING_REDIRECT = 'pending_redirect'
    NOT_FOUND = 'not_found'
    REDIRECTED = 'redirected'


def request_state(request: HttpRequest) -> RedirectState:
    return getattr(request, STATE_ATTR, RedirectState.UNVALIDATED)


def request_hostname(request: HttpRequest) -> str | None:
    """Return the lower-cased host name the request was made to."""

    return urlsplit(f'//{request.get_host()}').hostname


class RedirectValidator:
    """Decide whether a signed redirect request is honoured."""

    def __init__(self, signer: Signer | None = None, emitter: RedirectEmitter | None = None) -> None:
        self.signer = signer or Signer()
        self.emitter = emitter or RedirectEmitter()

    def check(self, signed: SignedRedirectRequest | None, request: HttpRequest) -> bool:
        """Return ``True`` if ``signed`` may be redirected to."""

        try:
            self._validate(signed, request)
        except ValidationFailure as failure:
            logger.debug('Signed redirect rejected: %s', failure.reason)
            return False
        return True

    def _validate(self, signed: SignedRedirectRequest | None, request: HttpRequest) -> None:
        if signed is None:
            raise ValidationFailure('destination or checksum missing')

        destination = signed.destination
        if not is_canonical_url(destination):
            raise ValidationFailure('destination is not a canonical URL')

        parts = urlsplit(destination)
        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise ValidationFailure('destination scheme is not allowed')
        if not parts.hostname:
            raise ValidationFailure('destination has no host')
        if parts.hostname == request_hostname(request):
            raise ValidationFailure('destination is on this site')

        if not self.signer.verify(destination, signed.checksum):
            raise ValidationFailure('checksum mismatch')

    def resolve(self, request: HttpRequest, signed: SignedRedirectRequest | None) -> None:
        """Stage one: accept or reject the request at routing time.

        Raises :class:`~django.http.Http404` on rejection. On success the
        request is left ``PENDING_REDIRECT`` and routed to the redirect view
        instead of whatever page the URL would otherwise display.
        """

        setattr(request, STATE_ATTR, RedirectState.UNVALIDATED)
        if not self.check(signed, request):
            setattr(request, STATE_ATTR, RedirectState.REJECTED)
            raise Http404()

        setattr(request, QUERY_VARS_ATTR, signed.as_query_vars())
        request.urlconf = REDIRECT_URLCONF
        setattr(request, STATE_ATTR, RedirectState.PENDING_REDIRECT)

    def finalize(self, request: HttpRequest) -> HttpResponse:
        """Stage two: re-validate the stored query variables and redirect."""

        signed = None
        if request_state(request) is RedirectState.PENDING_REDIRECT:
            signed = extract_signed_request({}, getattr(request, QUERY_VARS_ATTR, None) or {})

        if not self.check(signed, request):
            setattr(request, STATE_ATTR, RedirectState.NOT_FOUND)
            raise Http404()

        setattr(request, STATE_ATTR, RedirectState.REDIRECTED)
        return self.emitter.emit(signed.destination)
