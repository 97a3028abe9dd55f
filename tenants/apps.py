from django.apps import AppConfig


class TenantsConfig(AppConfig):
    """Stores, their commerce configuration and fulfillment partners."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "tenants"
    verbose_name = "Stores"
