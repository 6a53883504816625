"""Template tags for rendering embeddable content.

Usage::

    {% load embed_redirects %}
    {% embed_redirect_links post.body_html %}

The tag reads ``request`` from the template context, so the
``django.template.context_processors.request`` context processor must be
enabled. The content is expected to be trusted, already rendered markup.
"""

from __future__ import annotations

from django import template
from django.utils.safestring import mark_safe

from ..rewriter import rewrite_links

register = template.Library()


@register.simple_tag(takes_context=True)
def embed_redirect_links(context, content):
    if not content:
        return ''
    return mark_safe(rewrite_links(str(content), context.get('request')))
