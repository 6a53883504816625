"""Root URL configuration for embed_redirects_site.

The verified redirect route is listed first so that it takes priority over
anything the site adds after it.
"""

from django.urls import include, path

urlpatterns = [
    path('', include('embed_redirects.urls')),
]
