"""Addressing schemes for the verified redirect endpoint.

A signed redirect can reach the site in two ways:

``/<prefix>/<checksum>/<destination>``
    Path-embedded. The destination is the raw remainder of the request URI,
    query string included, exactly as it was appended when the link was
    built.

``?<checksum-param>=<checksum>&<destination-param>=<percent-encoded URL>``
    Query-embedded, accepted on any URL of the site. Sites that cannot serve
    descriptive paths rely on this form.

A path checksum followed by an empty remainder may also carry the
destination in the query string. Whatever the transport, the result is one
:class:`SignedRedirectRequest` and validation does not care where it came
from.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote, urlencode

from django.conf import settings
from django.http import HttpRequest

from .sanitize import is_canonical_url

DEFAULT_ROUTE_PREFIX = 'verified-redirect'
DEFAULT_DESTINATION_PARAM = 'verified-redirect'
DEFAULT_CHECKSUM_PARAM = 'er-checksum'

# Segments that browsers collapse before sending a request.
_DOT_SEGMENT_RE = re.compile(r'/\.{1,2}(?:/|$)')

# Canonical characters that browsers percent-encode in an http(s) query.
_QUERY_REENCODED = frozenset("'")


@dataclass(frozen=True)
class SignedRedirectRequest:
    """Destination and checksum pulled from an inbound request."""

    destination: str
    checksum: str

    def as_query_vars(self) -> dict[str, str]:
        """Return the canonical query-variable form of this request."""

        return {
            destination_param(): self.destination,
            checksum_param(): self.checksum,
        }


def route_prefix() -> str:
    return getattr(settings, 'EMBED_REDIRECTS_ROUTE_PREFIX', DEFAULT_ROUTE_PREFIX).strip('/')


def destination_param() -> str:
    return getattr(settings, 'EMBED_REDIRECTS_DESTINATION_PARAM', DEFAULT_DESTINATION_PARAM)


def checksum_param() -> str:
    return getattr(settings, 'EMBED_REDIRECTS_CHECKSUM_PARAM', DEFAULT_CHECKSUM_PARAM)


def route_regex(prefix: str | None = None) -> str:
    """Return the URL pattern for the path-embedded scheme.

    Group ``checksum`` is alphanumeric and non-greedy, group ``destination``
    is everything after the following slash.
    """

    if prefix is None:
        prefix = route_prefix()
    return rf'^{re.escape(prefix)}/(?P<checksum>[0-9a-zA-Z]+?)/(?P<destination>.*)$'


def extract_signed_request(
    route_params: Mapping[str, Any],
    query: Mapping[str, Any],
) -> SignedRedirectRequest | None:
    """Combine route parameters and query parameters into a signed request.

    Values resolved from the path take precedence over the query string.
    Returns ``None`` unless both a checksum and a destination are present.
    A field that is present but empty still counts; validation rejects it.
    """

    checksum = route_params.get('checksum') or query.get(checksum_param())
    destination = route_params.get('destination') or query.get(destination_param())
    if not isinstance(checksum, str) or not isinstance(destination, str):
        return None
    return SignedRedirectRequest(destination=destination, checksum=checksum)


def _raw_path_destination(request: HttpRequest, checksum: str, decoded_remainder: str) -> str:
    """Recover the undecoded destination that followed the checksum segment.

    WSGI servers hand Django a percent-decoded ``PATH_INFO``. When the server
    also exposes the original request line (gunicorn's ``RAW_URI``, uWSGI and
    Apache's ``REQUEST_URI``) the destination is cut from it verbatim;
    otherwise it is rebuilt from the decoded path and the raw query string.
    """

    marker = f'/{route_prefix()}/{checksum}/'
    raw_uri = request.META.get('RAW_URI') or request.META.get('REQUEST_URI')
    if raw_uri:
        index = raw_uri.find(marker)
        if index != -1:
            return raw_uri[index + len(marker):]

    query_string = request.META.get('QUERY_STRING', '')
    if query_string:
        return f'{decoded_remainder}?{query_string}'
    return decoded_remainder


def match_request(request: HttpRequest) -> SignedRedirectRequest | None:
    """Return the signed redirect carried by ``request``, if any."""

    path = request.path_info
    if path.startswith('/'):
        path = path[1:]

    route_params: dict[str, str] = {}
    match = re.match(route_regex(), path)
    if match:
        checksum = match.group('checksum')
        route_params['checksum'] = checksum
        if match.group('destination'):
            route_params['destination'] = _raw_path_destination(request, checksum, match.group('destination'))

    return extract_signed_request(route_params, request.GET)


def fits_path_scheme(href: str) -> bool:
    """Return ``True`` if ``href`` survives the trip as a raw path suffix.

    Fragments are never sent to the server, percent escapes are decoded by
    the WSGI layer, a trailing ``?`` is dropped and dot segments are
    resolved by the browser. Browsers also percent-encode non-ASCII
    characters, and ``'`` inside a query string. Links with any of those
    use the query scheme.
    """

    if not is_canonical_url(href) or not href.isascii():
        return False
    if '#' in href or '%' in href or href.endswith('?'):
        return False
    if _QUERY_REENCODED & set(href.partition('?')[2]):
        return False
    return _DOT_SEGMENT_RE.search(href) is None


def build_path_url(home_url: str, checksum: str, href: str) -> str:
    """Return ``<home>/<prefix>/<checksum>/<href>`` with ``href`` left raw."""

    return f"{home_url.rstrip('/')}/{route_prefix()}/{checksum}/{href}"


def build_query_url(home_url: str, checksum: str, href: str) -> str:
    """Return the site root with the checksum and encoded ``href`` as query."""

    query = urlencode(
        {
            checksum_param(): checksum,
            destination_param(): href,
        },
        quote_via=quote,
    )
    separator = '&' if '?' in home_url else '?'
    return f'{home_url}{separator}{query}'
