from django.apps import AppConfig


class SecurityConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.security"
    verbose_name = "Audit and logging"

    def ready(self):
        # Import signal handlers so they are registered when the app loads.
        import apps.security.signals  # noqa: F401
