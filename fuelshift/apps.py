"""Django app configuration for Fuelshift."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class FuelShiftConfig(AppConfig):
    """Configuration for Fuelshift app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "fuelshift"
    verbose_name = _("Turnos de Abastecimento")
