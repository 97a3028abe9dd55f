from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Shared building blocks: choices, base models and the error taxonomy."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "common"
