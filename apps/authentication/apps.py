from django.apps import AppConfig


class AuthenticationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.authentication"
    # AUTH_USER_MODEL points at this label
    label = "authentication"
    verbose_name = "Accounts and store access"
