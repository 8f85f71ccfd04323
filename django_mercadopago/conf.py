from django.conf import settings as dj_settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed

from django_mercadopago.constants import API_BASE_URL, SIGNATURE_SCHEMES


def default_mask_errors():
    return not dj_settings.DEBUG


DEFAULTS = {
    "WEBHOOK_SECRET": None,
    "ACCESS_TOKEN": None,
    "API_BASE_URL": API_BASE_URL,
    "PROVIDER_TIMEOUT": 10,
    "CLAIM_TIMEOUT": 60,
    "MASK_ERRORS": default_mask_errors,
    "SIGNATURE_SCHEME": "payload",
    "PAYMENT_EVENT_TYPE": "payment",
}


def is_callable(value):
    return callable(value) and not isinstance(value, type)


def validate_signature_scheme(value):
    if value not in SIGNATURE_SCHEMES:
        raise ImproperlyConfigured(
            f"DJANGO_MERCADOPAGO_SIGNATURE_SCHEME must be one of {SIGNATURE_SCHEMES}, "
            f"got {value!r}."
        )
    return value


class Settings(object):
    def __getattr__(self, name):
        if name not in DEFAULTS:
            msg = "'%s' object has no attribute '%s'"
            raise AttributeError(msg % (self.__class__.__name__, name))

        value = self.get_setting(name)

        if is_callable(value):
            value = value()

        # Cache the result
        setattr(self, name, value)
        return value

    def get_setting(self, setting):
        django_setting = f"DJANGO_MERCADOPAGO_{setting}"
        value = getattr(dj_settings, django_setting, DEFAULTS[setting])

        if setting == "SIGNATURE_SCHEME":
            return validate_signature_scheme(value)

        return value

    def change_setting(self, setting, value, enter, **kwargs):
        # MASK_ERRORS defaults to a value derived from DEBUG
        if setting == "DEBUG":
            self.__dict__.pop("MASK_ERRORS", None)
            return

        if not setting.startswith("DJANGO_MERCADOPAGO_"):
            return

        setting = setting.split("DJANGO_MERCADOPAGO_")[1]

        # ensure a valid app setting is being overridden
        if setting not in DEFAULTS:
            return

        # drop the cached value; the next access re-reads Django settings
        self.__dict__.pop(setting, None)


settings = Settings()
setting_changed.connect(settings.change_setting)
