"""Canonical clean-up of redirect destinations.

``sanitize_url`` is the routine a destination must survive unchanged before
the site will redirect to it: it strips characters that have no business in
a URL (ASCII controls, whitespace, quotes, angle brackets), repairs
stray percent signs and blanks out anything that is not an ``http`` or
``https`` URL. A destination that comes back different was not canonical and
is rejected.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

ALLOWED_SCHEMES = ('http', 'https')

# Non-ASCII is kept so internationalised URLs stay canonical.
_DISALLOWED_RE = re.compile(r"[^a-z0-9\-~+_.?#=!&;,/:%@$|*'()\[\]\u0080-\U0010ffff]", re.IGNORECASE)
_BAD_PERCENT_RE = re.compile(r'%(?![0-9a-fA-F]{2})')


def sanitize_url(url: object) -> str:
    """Return the canonical form of ``url``, or ``''`` if it is unusable."""

    if not isinstance(url, str):
        return ''

    cleaned = url.lstrip().replace(' ', '%20')
    cleaned = _DISALLOWED_RE.sub('', cleaned)
    cleaned = _BAD_PERCENT_RE.sub('%25', cleaned)
    if not cleaned:
        return ''

    try:
        scheme = urlsplit(cleaned).scheme
    except ValueError:
        # e.g. an unbalanced IPv6 bracket in the netloc
        return ''
    if scheme.lower() not in ALLOWED_SCHEMES:
        return ''
    return cleaned


def is_canonical_url(url: object) -> bool:
    """Return ``True`` when ``url`` is non-empty and sanitizes to itself."""

    return isinstance(url, str) and bool(url) and sanitize_url(url) == url
