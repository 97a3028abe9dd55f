"""Django app configuration for catalog."""

from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Sellable items, bundles and the composition resolver."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "catalog"
