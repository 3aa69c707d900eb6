from django.apps import AppConfig
from django.conf import settings
from django.core import checks


class SellMyImagesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sellmyimages"
    verbose_name = "Sell My Images"

    def ready(self):
        checks.register(check_payment_configuration, checks.Tags.compatibility)


def check_payment_configuration(app_configs, **kwargs):
    """Warn when checkouts would be refused for lack of Stripe keys."""
    warnings = []
    if not settings.STRIPE_SECRET_KEY:
        warnings.append(
            checks.Warning(
                "STRIPE_SECRET_KEY is not set; checkouts will be refused.",
                id="sellmyimages.W001",
            )
        )
    if not settings.STRIPE_WEBHOOK_SECRET:
        warnings.append(
            checks.Warning(
                "STRIPE_WEBHOOK_SECRET is not set; checkouts will be refused "
                "and Stripe webhooks cannot be verified.",
                id="sellmyimages.W002",
            )
        )
    return warnings
