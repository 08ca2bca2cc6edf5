from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "secret",
}

# Hosts that are never tenant domains, regardless of configuration
LOCAL_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "::1", "[::1]")


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    APP_NAME: str = "Bublr"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change_this"
    ALGORITHM: str = "HS256"

    # Canonical domain of the platform; custom domains CNAME to it
    APP_DOMAIN: str = "bublr.life"
    # Extra non-tenant hosts, comma-separated (e.g. preview deployments)
    DEFAULT_HOSTS: str = ""
    # Path prefixes that are never rewritten to a tenant profile
    TENANT_EXCLUDED_PREFIXES: str = (
        "/api,/_next,/static,/favicon.ico,/metrics,/health,/docs,/openapi.json"
    )

    # Database
    DATABASE_URL: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "bublr"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Collaborator timeouts (seconds)
    STORE_TIMEOUT: float = 5.0
    DNS_TIMEOUT: float = 5.0
    BILLING_TIMEOUT: float = 10.0

    # Search
    SEARCH_DEFAULT_LIMIT: int = 20
    SEARCH_MAX_LIMIT: int = 100
    SEARCH_CANDIDATE_MULTIPLIER: int = 2

    # Billing
    BILLING_PROVIDER: str = "stored"  # stored / dodo / lemonsqueezy
    SUBSCRIPTION_GRACE_DAYS: int = 3
    DODO_PAYMENTS_API_KEY: str = ""
    DODO_PAYMENTS_ENVIRONMENT: str = "live"
    LEMON_SQUEEZY_API_KEY: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set a strong random key (≥ 32 chars) in .env or environment."
                )
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def default_hosts(self) -> List[str]:
        return _split_csv(self.DEFAULT_HOSTS.lower())

    @property
    def excluded_prefixes(self) -> List[str]:
        return _split_csv(self.TENANT_EXCLUDED_PREFIXES)

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"


settings = Settings()
