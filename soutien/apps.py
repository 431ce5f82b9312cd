# soutien/apps.py
from django.apps import AppConfig


class SoutienConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "soutien"
    verbose_name = "Cours de soutien"

    def ready(self):
        from . import signals  # charge signals.py
