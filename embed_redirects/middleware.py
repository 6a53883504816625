from __future__ import annotations

import logging
import time
from typing import Callable

from django.conf import settings
from django.core.cache import caches
from django.http import HttpRequest, HttpResponse, JsonResponse

from .routing import match_request
from .validation import RedirectValidator
from .views import VALIDATOR_ATTR

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_LIMIT = 60  # requests
DEFAULT_THROTTLE_WINDOW = 60  # seconds
DEFAULT_THROTTLE_KEY_PREFIX = 'embed_redirects:throttle'


class SlidingWindowRateThrottle:
    """Sliding-window limit on signed redirect attempts per client IP.

    Every guess at a checksum costs a request; this keeps the number of
    guesses a single client can make small. Requests that do not carry a
    signed redirect pass straight through.
    """

    def __init__(
        self,
        get_response: Callable[[HttpRequest], HttpResponse],
        *,
        limit: int | None = None,
        window: int | None = None,
        cache_alias: str = 'default',
        key_prefix: str | None = None,
    ) -> None:
        self.get_response = get_response
        self.limit = limit or getattr(settings, 'THROTTLE_LIMIT', DEFAULT_THROTTLE_LIMIT)
        self.window = window or getattr(settings, 'THROTTLE_WINDOW', DEFAULT_THROTTLE_WINDOW)
        self.cache = caches[cache_alias]
        self.key_prefix = key_prefix or getattr(settings, 'THROTTLE_KEY_PREFIX', DEFAULT_THROTTLE_KEY_PREFIX)

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if match_request(request) is None:
            return self.get_response(request)

        cache_key = self._build_cache_key(request)
        now = time.time()
        bucket = self.cache.get(cache_key, [])
        bucket = [timestamp for timestamp in bucket if timestamp > now - self.window]

        if len(bucket) >= self.limit:
            return self._reject(request)

        bucket.append(now)
        self.cache.set(cache_key, bucket, timeout=self.window)
        return self.get_response(request)

    def _build_cache_key(self, request: HttpRequest) -> str:
        ip = self._get_client_ip(request)
        return f"{self.key_prefix}:verified_redirect:{ip}"

    def _get_client_ip(self, request: HttpRequest) -> str:
        header = getattr(settings, 'THROTTLE_IP_HEADER', 'HTTP_X_FORWARDED_FOR')
        if header in request.META:
            value = request.META[header]
            return value.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', '0.0.0.0')

    def _reject(self, request: HttpRequest) -> HttpResponse:
        logger.warning('Throttled signed redirect attempts from %s', self._get_client_ip(request))
        payload = {
            'detail': 'Rate limit exceeded. Try again shortly.',
        }
        return JsonResponse(payload, status=429)


class VerifiedRedirectMiddleware:
    """Run the first redirect check before the request is dispatched.

    A request carrying a signed redirect, in either addressing scheme, is
    validated here. Failures raise ``Http404`` so Django answers with its
    usual not-found page and the view for the URL never runs. Successes are
    re-routed to :func:`~embed_redirects.views.verified_redirect`, which
    checks again and redirects.
    """

    def __init__(
        self,
        get_response: Callable[[HttpRequest], HttpResponse],
        *,
        validator: RedirectValidator | None = None,
    ) -> None:
        self.get_response = get_response
        self.validator = validator or RedirectValidator()

    def __call__(self, request: HttpRequest) -> HttpResponse:
        signed = match_request(request)
        if signed is not None:
            setattr(request, VALIDATOR_ATTR, self.validator)
            self.validator.resolve(request, signed)
        return self.get_response(request)
