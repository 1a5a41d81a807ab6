from django.apps import AppConfig


class SponsorshipsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.sponsorships"
    verbose_name = "Sponsorships"

    def ready(self) -> None:
        from . import handlers

        handlers.register()
