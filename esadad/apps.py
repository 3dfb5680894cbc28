from django.apps import AppConfig


class ESadadConfig(AppConfig):
    name = "esadad"
    verbose_name = "e-SADAD Gateway"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self) -> None:
        # Registers the settings-changed hook that resets the shared gateway.
        from . import gateway  # noqa: F401
