from decimal import Decimal
from typing import Any

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and ``.env``.

    Every field has a default so the service starts with an empty
    environment.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Storefront Commerce API"
    PROJECT_DESCRIPTION: str = "Cart, checkout, promotions, orders and payments"
    VERSION: str = "0.1.0"

    # Application Settings
    DEBUG: bool = Field(False, description="Debug mode")
    ENVIRONMENT: str = Field("production", description="Runtime environment")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FORMAT: str = Field("text", description="Log output format: json or text")

    # PostgreSQL Database Settings
    DB_HOST: str = Field("localhost", description="PostgreSQL host")
    DB_PORT: int = Field(5432, description="PostgreSQL port")
    DB_NAME: str = Field("storefront", description="Database name")
    DB_USER: str = Field("postgres", description="PostgreSQL user")
    DB_PASSWORD: str | None = Field(None, description="PostgreSQL password")
    DB_ECHO: bool = Field(False, description="Log SQL queries (debug only)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(20, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(30, description="Pool overflow")
    DB_POOL_RECYCLE: int = Field(3600, description="Recycle connections after X seconds")
    DB_POOL_TIMEOUT: int = Field(30, description="Timeout waiting for a pooled connection")

    # Redis Settings
    REDIS_HOST: str = Field("localhost", description="Redis host")
    REDIS_PORT: int = Field(6379, description="Redis port")
    REDIS_DB: int = Field(0, description="Redis database")
    REDIS_PASSWORD: str | None = Field(None, description="Redis password")
    PAYMENT_CALLBACK_LOCK_ENABLED: bool = Field(
        True, description="Deduplicate gateway callbacks through Redis before hitting the database"
    )

    # Payment Gateway
    PAYMENT_GATEWAY_MERCHANT_ID: str = Field("", description="Merchant ID issued by the gateway")
    PAYMENT_GATEWAY_SANDBOX: bool = Field(True, description="Use the gateway sandbox")
    PAYMENT_GATEWAY_BASE_URL: str = Field("https://api.zarinpal.com", description="Gateway API base URL")
    PAYMENT_GATEWAY_SANDBOX_URL: str = Field("https://sandbox.zarinpal.com", description="Gateway sandbox URL")
    PAYMENT_GATEWAY_START_PAY_URL: str = Field(
        "https://www.zarinpal.com", description="Host the customer is redirected to outside the sandbox"
    )
    PAYMENT_GATEWAY_TIMEOUT: float = Field(30.0, description="Gateway request timeout in seconds")
    PAYMENT_CALLBACK_URL: str = Field(
        "http://localhost:8000/api/v1/payments/verify", description="URL the gateway redirects back to"
    )
    PAYMENT_DESCRIPTION: str = Field(
        "Payment for order {order_number}", description="Payment description template"
    )

    # Commerce policy
    CART_TTL_DAYS: int = Field(30, description="Days a cart survives without changes")
    RETURN_WINDOW_DAYS: int = Field(7, description="Days after delivery during which returns are accepted")
    VIP_SPEND_THRESHOLD: Decimal = Field(Decimal("50000000"), description="Delivered spend above which a customer is VIP")
    INACTIVE_AFTER_DAYS: int = Field(90, description="Days since last delivery after which a customer is inactive")
    SHIPPING_COST_NORMAL: Decimal = Field(Decimal("0"), description="Shipping cost for normal delivery")
    SHIPPING_COST_EXPRESS: Decimal = Field(Decimal("0"), description="Shipping cost for express delivery")
    SHIPPING_COST_SCHEDULED: Decimal = Field(Decimal("0"), description="Shipping cost for scheduled delivery")
    ORDER_NUMBER_PREFIX: str = Field("ORD", description="Prefix of generated order numbers")

    # Maintenance
    MAINTENANCE_SWEEP_ENABLED: bool = Field(True, description="Run the periodic maintenance sweep")
    MAINTENANCE_SWEEP_INTERVAL_MINUTES: int = Field(15, description="Minutes between sweeps")
    SCHEDULER_TIMEZONE: str = Field("UTC", description="Timezone of the background scheduler")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str) and not value.startswith("["):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v.lower()

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @field_validator("RETURN_WINDOW_DAYS", "CART_TTL_DAYS", "MAINTENANCE_SWEEP_INTERVAL_MINUTES")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Value must be at least 1")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """Synchronous psycopg2 database URL (used by Alembic)"""
        if self.DB_PASSWORD:
            return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"postgresql://{self.DB_USER}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @computed_field
    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @property
    def payment_gateway_url(self) -> str:
        return self.PAYMENT_GATEWAY_SANDBOX_URL if self.PAYMENT_GATEWAY_SANDBOX else self.PAYMENT_GATEWAY_BASE_URL

    @property
    def payment_start_pay_url(self) -> str:
        return self.PAYMENT_GATEWAY_SANDBOX_URL if self.PAYMENT_GATEWAY_SANDBOX else self.PAYMENT_GATEWAY_START_PAY_URL


# Settings singleton
_settings_instance = None


def get_settings() -> Settings:
    """
    Return the cached settings instance.
    Environment variables are read only once.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
