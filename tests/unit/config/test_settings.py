"""
Unit tests for application settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.config.settings import Settings, get_settings


@pytest.mark.unit
class TestSettings:
    """Defaults, parsing and validation."""

    def test_commerce_defaults(self):
        settings = Settings()

        assert settings.CART_TTL_DAYS == 30
        assert settings.RETURN_WINDOW_DAYS == 7
        assert settings.ORDER_NUMBER_PREFIX == "ORD"
        assert settings.SHIPPING_COST_NORMAL == Decimal("0")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RETURN_WINDOW_DAYS", "14")
        monkeypatch.setenv("SHIPPING_COST_EXPRESS", "80.50")

        settings = Settings()

        assert settings.RETURN_WINDOW_DAYS == 14
        assert settings.SHIPPING_COST_EXPRESS == Decimal("80.50")

    def test_cors_origins_from_comma_list(self):
        settings = Settings(CORS_ORIGINS="https://a.test, https://b.test,")

        assert settings.CORS_ORIGINS == ["https://a.test", "https://b.test"]

    def test_log_format_normalized(self):
        assert Settings(LOG_FORMAT="JSON").LOG_FORMAT == "json"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("LOG_FORMAT", "xml"),
            ("DB_POOL_SIZE", 0),
            ("DB_POOL_SIZE", 101),
            ("RETURN_WINDOW_DAYS", 0),
            ("CART_TTL_DAYS", -1),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_database_url(self):
        settings = Settings(DB_USER="shop", DB_PASSWORD="secret", DB_HOST="db", DB_PORT=5433, DB_NAME="store")

        assert settings.database_url == "postgresql://shop:secret@db:5433/store"
        assert Settings(DB_PASSWORD=None, DB_USER="shop", DB_HOST="db").database_url.startswith("postgresql://shop@db:")

    def test_redis_url(self):
        assert Settings(REDIS_PASSWORD="pw", REDIS_HOST="cache", REDIS_DB=2).redis_url == "redis://:pw@cache:6379/2"

    def test_gateway_url_follows_sandbox_flag(self):
        sandbox = Settings(PAYMENT_GATEWAY_SANDBOX=True)
        live = Settings(PAYMENT_GATEWAY_SANDBOX=False)

        assert sandbox.payment_gateway_url == sandbox.PAYMENT_GATEWAY_SANDBOX_URL
        assert live.payment_gateway_url == live.PAYMENT_GATEWAY_BASE_URL
        assert live.payment_start_pay_url == live.PAYMENT_GATEWAY_START_PAY_URL

    def test_is_development(self):
        assert Settings(ENVIRONMENT="development", DEBUG=False).is_development is True
        assert Settings(ENVIRONMENT="production", DEBUG=False).is_development is False

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
