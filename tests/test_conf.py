import pytest
from django.core.exceptions import ImproperlyConfigured

from django_mercadopago.conf import (
    DEFAULTS,
    Settings,
    is_callable,
    settings as app_settings,
    validate_signature_scheme,
)


class TestIsCallable:
    def test_function_is_callable(self):
        assert is_callable(lambda: None) is True

    def test_class_is_not_callable(self):
        class MyClass:
            pass

        assert is_callable(MyClass) is False

    def test_string_is_not_callable(self):
        assert is_callable("payload") is False


class TestValidateSignatureScheme:
    @pytest.mark.parametrize("scheme", ["payload", "manifest"])
    def test_known_schemes(self, scheme):
        assert validate_signature_scheme(scheme) == scheme

    def test_unknown_scheme(self):
        with pytest.raises(ImproperlyConfigured):
            validate_signature_scheme("sha1")


class TestSettings:
    def test_reads_django_setting(self):
        assert app_settings.WEBHOOK_SECRET == "test-webhook-secret"
        assert app_settings.ACCESS_TOKEN == "TEST-access-token"

    def test_defaults(self):
        fresh = Settings()

        assert fresh.API_BASE_URL == "https://api.mercadopago.com"
        assert fresh.PROVIDER_TIMEOUT == 10
        assert fresh.CLAIM_TIMEOUT == 60
        assert fresh.SIGNATURE_SCHEME == "payload"
        assert fresh.PAYMENT_EVENT_TYPE == "payment"

    def test_unknown_setting(self):
        with pytest.raises(AttributeError):
            app_settings.NOT_A_SETTING

    def test_override_invalidates_cache(self, settings):
        assert app_settings.CLAIM_TIMEOUT == DEFAULTS["CLAIM_TIMEOUT"]

        settings.DJANGO_MERCADOPAGO_CLAIM_TIMEOUT = 5

        assert app_settings.CLAIM_TIMEOUT == 5

    def test_unrelated_setting_change_is_ignored(self, settings):
        cached = app_settings.PROVIDER_TIMEOUT

        settings.DJANGO_MERCADOPAGO_UNKNOWN = "x"
        settings.TIME_ZONE = "America/Puerto_Rico"

        assert app_settings.PROVIDER_TIMEOUT == cached

    def test_invalid_scheme_setting(self, settings):
        settings.DJANGO_MERCADOPAGO_SIGNATURE_SCHEME = "md5"

        with pytest.raises(ImproperlyConfigured):
            app_settings.SIGNATURE_SCHEME

    @pytest.mark.parametrize("debug,masked", [(True, False), (False, True)])
    def test_mask_errors_follows_debug(self, settings, debug, masked):
        settings.DEBUG = debug

        assert Settings().MASK_ERRORS is masked

    def test_mask_errors_tracks_debug_changes(self, settings):
        settings.DEBUG = True
        assert app_settings.MASK_ERRORS is False

        settings.DEBUG = False
        assert app_settings.MASK_ERRORS is True

    def test_mask_errors_explicit(self, settings):
        settings.DEBUG = True
        settings.DJANGO_MERCADOPAGO_MASK_ERRORS = True

        assert app_settings.MASK_ERRORS is True
