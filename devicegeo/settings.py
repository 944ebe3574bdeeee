from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PROVIDER_ORDER = ["ipapi.co", "ip-api.com", "ipinfo.io"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    LOG_LEVEL: str = "INFO"  # DEBUG, WARNING, ERROR
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # ===== IP lookup =====
    IP_CACHE_TTL_SECONDS: float = Field(default=24 * 60 * 60, gt=0)  # 24 hours
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=8.0, gt=0)
    RESOLVE_TIMEOUT_SECONDS: float | None = None
    PROVIDER_ORDER: list[str] = Field(default_factory=lambda: list(DEFAULT_PROVIDER_ORDER))
    IPINFO_TOKEN: str | None = None

    # ===== CORS =====
    # The collection script is embedded on other origins.
    CORS_ALLOW_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # ===== Device records =====
    RECENT_LIMIT_DEFAULT: int = 20
    RECENT_LIMIT_MAX: int = 200
    MAX_STORED_DEVICES: int = 10000

    # ===== Keep-alive =====
    KEEP_ALIVE_ENABLED: bool = False
    KEEP_ALIVE_URL: str | None = None
    KEEP_ALIVE_INTERVAL_SECONDS: float = 10 * 60  # 10 minutes

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("RESOLVE_TIMEOUT_SECONDS")
    @classmethod
    def _positive_or_unset(cls, value: float | None) -> float | None:
        """A zero or negative overall deadline disables it."""
        if value is not None and value <= 0:
            return None
        return value

    @property
    def keep_alive_url(self) -> str:
        return (self.KEEP_ALIVE_URL or f"http://{self.HOST}:{self.PORT}").rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
