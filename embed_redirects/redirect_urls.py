"""URLconf installed on requests that passed the first redirect check.

Every path resolves to the redirect view, so the page normally served at the
URL (and any query it would run) is never dispatched.
"""

from django.urls import re_path

from . import views

urlpatterns = [
    re_path(r'^', views.verified_redirect, name='verified_redirect'),
]
