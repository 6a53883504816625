"""Issue the final redirect for a verified destination."""

from __future__ import annotations

from typing import Callable
from urllib.parse import quote

from django.conf import settings
from django.http import HttpResponseRedirect
from django.utils.module_loading import import_string

REDIRECT_BY = 'verified-redirect'
PERMANENT_ENVIRONMENTS = ('production', 'staging')
DEFAULT_ENVIRONMENT = 'production'

# Printable ASCII passes through ``Location`` as is; anything else is
# UTF-8 percent-encoded.
_LOCATION_SAFE = ''.join(chr(code) for code in range(0x21, 0x7f))

RedirectCodePolicy = Callable[[int], int]


def environment_type() -> str:
    return getattr(settings, 'ENVIRONMENT_TYPE', DEFAULT_ENVIRONMENT)


def default_redirect_code(environment: str) -> int:
    """Return 301 on production-like environments and 302 everywhere else."""

    if environment in PERMANENT_ENVIRONMENTS:
        return 301
    return 302


def load_redirect_code_policy() -> RedirectCodePolicy | None:
    """Return the callable named by ``EMBED_REDIRECTS_REDIRECT_CODE_POLICY``."""

    policy = getattr(settings, 'EMBED_REDIRECTS_REDIRECT_CODE_POLICY', None)
    if isinstance(policy, str):
        return import_string(policy)
    return policy


class RedirectEmitter:
    """Build the redirect response for a destination that passed validation.

    ``code_policy`` receives the default status code and returns the one to
    use. It is trusted: keeping the result in the 3xx range is the caller's
    job.
    """

    def __init__(
        self,
        environment: str | None = None,
        code_policy: RedirectCodePolicy | None = None,
    ) -> None:
        self.environment = environment
        self.code_policy = code_policy

    def redirect_code(self) -> int:
        code = default_redirect_code(self.environment or environment_type())
        policy = self.code_policy or load_redirect_code_policy()
        if policy is not None:
            code = int(policy(code))
        return code

    def emit(self, destination: str) -> HttpResponseRedirect:
        response = HttpResponseRedirect(destination)
        response.status_code = self.redirect_code()
        # iri_to_uri() in HttpResponseRedirect also escapes ASCII such as "|";
        # the destination was signed as written, so only non-ASCII changes.
        response['Location'] = quote(destination, safe=_LOCATION_SAFE)
        response['X-Redirect-By'] = REDIRECT_BY
        return response
