"""Rewrite outbound links in rendered content to verified redirects.

Embeds are only allowed to navigate to their own site, so every link to a
third-party ``http``/``https`` URL is replaced with a link to this site's
redirect endpoint carrying the destination and its checksum. Links to this
site, other schemes and relative references are left exactly as they were.
Rewritten links point at this site, so running the pass twice changes
nothing the second time.

BeautifulSoup is only used to find the anchors. The new ``href`` values are
spliced into the original string at the positions the parser recorded, so
every byte outside those values comes back untouched.
"""

from __future__ import annotations

import logging
import re
from html import unescape
from typing import Callable
from urllib.parse import urlsplit

from bs4 import BeautifulSoup  # type: ignore
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.http import HttpRequest
from django.urls import get_script_prefix
from django.utils.html import escape
from django.utils.module_loading import import_string

from .decorators import is_embed_request
from .exceptions import ParseSkip
from .routing import build_path_url, build_query_url, fits_path_scheme
from .sanitize import ALLOWED_SCHEMES, is_canonical_url
from .signing import Signer

logger = logging.getLogger(__name__)

EmbedPolicy = Callable[[HttpRequest | None], bool]

_HREF_RE = re.compile(r'href\s*=', re.IGNORECASE)

# Start-tag tokens, following the tolerant rules of html.parser.
_TAG_OPEN_RE = re.compile(r'<([a-zA-Z][^\s/>]*)')
_ATTR_GAP_RE = re.compile(r'[\s/]*')
_ATTR_RE = re.compile(r'''([^\s/>][^\s/=>]*)(?:\s*=\s*('[^']*'|"[^"]*"|(?![\'"])[^>\s]*))?''')


def load_embed_policy() -> EmbedPolicy:
    """Return the callable named by ``EMBED_REDIRECTS_EMBED_POLICY``."""

    policy = getattr(settings, 'EMBED_REDIRECTS_EMBED_POLICY', None)
    if isinstance(policy, str):
        return import_string(policy)
    return policy or is_embed_request


def home_url_for(request: HttpRequest | None) -> str:
    """Return the absolute site root that redirect links are built on."""

    configured = getattr(settings, 'EMBED_REDIRECTS_HOME_URL', None)
    if configured:
        return configured
    if request is None:
        raise ImproperlyConfigured(
            'EMBED_REDIRECTS_HOME_URL must be set to rewrite links outside of a request.'
        )
    return request.build_absolute_uri(get_script_prefix())


def classify_href(value: object, home_host: str | None) -> str:
    """Return ``value`` if it is an outbound link that should be rewritten.

    Raises :class:`ParseSkip` for anything else.
    """

    if not isinstance(value, str) or not value:
        raise ParseSkip('href is missing or empty')

    try:
        parts = urlsplit(value)
        host = parts.hostname
    except ValueError:
        raise ParseSkip('href is not a parseable URL') from None

    if not host:
        raise ParseSkip('href has no host')
    if host == home_host:
        raise ParseSkip('href points at this site')
    # urlsplit lowercases the scheme; only the exact spellings qualify.
    if parts.scheme not in ALLOWED_SCHEMES or not value.startswith(f'{parts.scheme}:'):
        raise ParseSkip('href scheme is not http or https')
    if not is_canonical_url(value):
        # The redirect endpoint would refuse it; keep the original link.
        raise ParseSkip('href is not a canonical URL')
    return value


def _line_offsets(content: str) -> list[int]:
    """Return the string offset at which each line of ``content`` starts."""

    offsets = [0]
    offsets.extend(match.end() for match in re.finditer('\n', content))
    return offsets


def _href_value_span(content: str, start: int) -> tuple[int, int] | None:
    """Locate the value of the first ``href`` on the ``<a>`` tag at ``start``.

    The span includes the quotes when the value is quoted. Browsers honour
    the first of duplicated attributes, so later ones are ignored. Returns
    ``None`` if the tag carries no ``href`` with a value.
    """

    tag = _TAG_OPEN_RE.match(content, start)
    if tag is None or tag.group(1).lower() != 'a':
        return None

    pos = tag.end()
    while True:
        pos = _ATTR_GAP_RE.match(content, pos).end()
        if pos >= len(content) or content[pos] == '>':
            return None
        attr = _ATTR_RE.match(content, pos)
        if attr.group(1).lower() == 'href':
            if attr.group(2) is None:
                return None
            return attr.start(2), attr.end(2)
        pos = attr.end()


class ContentRewriter:
    """Replace outbound anchor targets with signed redirect URLs.

    Parameters
    ----------
    signer:
        Computes the checksums. Defaults to a :class:`Signer` on the stored
        site key.
    home_url:
        Absolute site root. Defaults to ``EMBED_REDIRECTS_HOME_URL`` or the
        root of the current request.
    descriptive_paths:
        Build ``/<prefix>/<checksum>/<url>`` links rather than query-string
        links. Defaults to ``EMBED_REDIRECTS_DESCRIPTIVE_PATHS`` (``True``).
    embed_policy:
        ``f(request) -> bool`` deciding whether the render is an embed.
        Defaults to ``EMBED_REDIRECTS_EMBED_POLICY`` or
        :func:`~embed_redirects.decorators.is_embed_request`.
    """

    def __init__(
        self,
        signer: Signer | None = None,
        *,
        home_url: str | None = None,
        descriptive_paths: bool | None = None,
        embed_policy: EmbedPolicy | None = None,
    ) -> None:
        self.signer = signer or Signer()
        self.home_url = home_url
        self.descriptive_paths = descriptive_paths
        self.embed_policy = embed_policy

    def uses_descriptive_paths(self) -> bool:
        if self.descriptive_paths is not None:
            return self.descriptive_paths
        return bool(getattr(settings, 'EMBED_REDIRECTS_DESCRIPTIVE_PATHS', True))

    def redirect_url(self, href: str, home_url: str, signer: Signer | None = None) -> str:
        """Return the signed redirect URL for ``href``."""

        checksum = (signer or self.signer).sign(href)
        if self.uses_descriptive_paths() and fits_path_scheme(href):
            return build_path_url(home_url, checksum, href)
        return build_query_url(home_url, checksum, href)

    def rewrite(self, content: str, request: HttpRequest | None = None) -> str:
        """Return ``content`` with its outbound links rewritten.

        Content is returned untouched when the render is not an embed, when
        it contains no links, or when none of its links qualify.
        """

        if not content or not _HREF_RE.search(content):
            return content

        policy = self.embed_policy or load_embed_policy()
        if not policy(request):
            return content

        home_url = self.home_url or home_url_for(request)
        home_host = urlsplit(home_url).hostname

        # html.parser records where each tag starts in the source.
        soup = BeautifulSoup(content, 'html.parser')
        line_offsets = _line_offsets(content)
        signer = None
        edits: list[tuple[int, int, str]] = []
        for anchor in soup.find_all('a'):
            if anchor.sourceline is None:
                continue
            span = _href_value_span(content, line_offsets[anchor.sourceline - 1] + anchor.sourcepos)
            if span is None:
                continue

            start, end = span
            raw = content[start:end]
            quote = raw[0] if raw[:1] in ('"', "'") else ''
            try:
                href = classify_href(unescape(raw[1:-1] if quote else raw), home_host)
            except ParseSkip as skip:
                logger.debug('Leaving link unchanged: %s', skip.reason)
                continue

            if signer is None:
                signer = self.signer.pinned()
            quote = quote or '"'
            edits.append((start, end, f'{quote}{escape(self.redirect_url(href, home_url, signer))}{quote}'))

        for start, end, replacement in reversed(edits):
            content = content[:start] + replacement + content[end:]
        return content


def rewrite_links(content: str, request: HttpRequest | None = None) -> str:
    """Rewrite ``content`` with a default-configured :class:`ContentRewriter`."""

    return ContentRewriter().rewrite(content, request)
