from django.apps import AppConfig


class EmbedRedirectsConfig(AppConfig):
    """Configuration for the embed_redirects Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'embed_redirects'
    verbose_name = 'Embed redirects'
