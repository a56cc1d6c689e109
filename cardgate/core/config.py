from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_ENVIRONMENTS = {"production", "development", "test"}
ALLOWED_GATEWAYS = {"braintree", "spreedly"}

REQUIRED_CREDENTIALS = {
    "braintree": ("braintree_merchant_id", "braintree_public_key", "braintree_private_key"),
    "spreedly": ("spreedly_environment_key", "spreedly_access_secret", "spreedly_gateway_token"),
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    environment: str = Field(default="development", description="production, development or test")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    payment_gateway: Optional[str] = Field(default=None, description="Gateway used by gateway_from_settings()")

    braintree_merchant_id: Optional[str] = Field(default=None)
    braintree_public_key: Optional[str] = Field(default=None)
    braintree_private_key: Optional[str] = Field(default=None)

    spreedly_environment_key: Optional[str] = Field(default=None)
    spreedly_access_secret: Optional[str] = Field(default=None)
    spreedly_gateway_token: Optional[str] = Field(default=None)
    spreedly_currency_code: Optional[str] = Field(
        default=None, description="ISO 4217 code sent with Spreedly transactions; omitted when unset"
    )
    spreedly_base_url: str = Field(default="https://core.spreedly.com/v1")

    http_timeout_seconds: float = Field(default=30.0, gt=0)

    @model_validator(mode="before")
    @classmethod
    def normalize_choices(cls, data: dict) -> dict:
        """
        Lower-case the enumerated settings and reject unknown values.

        Runs before field validation so that `PRODUCTION` in the environment
        is accepted the same as `production`.
        """
        data = dict(data)

        environment = str(data.get("environment", "development")).strip().lower()
        if environment not in ALLOWED_ENVIRONMENTS:
            raise ValueError(f"environment must be one of {sorted(ALLOWED_ENVIRONMENTS)}, got '{environment}'")
        data["environment"] = environment

        gateway = data.get("payment_gateway")
        if gateway:
            gateway = str(gateway).strip().lower()
            if gateway not in ALLOWED_GATEWAYS:
                raise ValueError(f"payment_gateway must be one of {sorted(ALLOWED_GATEWAYS)}, got '{gateway}'")
            data["payment_gateway"] = gateway

        return data

    @model_validator(mode="after")
    def check_gateway_credentials(self) -> "Settings":
        """Report every missing credential of the selected gateway at once."""
        if self.payment_gateway is None:
            return self

        missing = [
            name
            for name in REQUIRED_CREDENTIALS[self.payment_gateway]
            if not getattr(self, name) or not str(getattr(self, name)).strip()
        ]
        if missing:
            raise ValueError(
                f"When payment_gateway='{self.payment_gateway}', the following settings are required: {', '.join(missing)}"
            )
        return self


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The cached settings instance
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the cached settings instance.

    The next call to get_settings() re-reads the environment.
    """
    get_settings.cache_clear()
