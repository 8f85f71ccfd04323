from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class DjangoMercadoPagoAppConfig(AppConfig):
    default = True
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_mercadopago"
    verbose_name = _("Mercado Pago Webhooks")
