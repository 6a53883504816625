"""URL configuration for the embed_redirects app.

Include it ahead of the project's other patterns so the redirect route wins::

    path('', include('embed_redirects.urls')),
"""

from django.urls import re_path

from . import views
from .routing import route_regex

app_name = 'embed_redirects'

urlpatterns = [
    re_path(route_regex(), views.verified_redirect, name='verified_redirect'),
]
