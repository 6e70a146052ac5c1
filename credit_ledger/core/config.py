"""Application configuration using pydantic settings with structured sections."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./credit_ledger.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    admin_roles: frozenset[str] = frozenset({"admin", "super_admin"})


class LedgerSettings(BaseModel):
    lock_timeout_seconds: float = Field(default=5.0, gt=0)


class CashSettings(BaseModel):
    payment_methods: tuple[str, ...] = ("gcash", "maya", "bank_transfer")
    cash_in_fee: int = Field(default=0, ge=0)
    cash_in_min: int = 100
    cash_in_max: int = 50_000
    cash_out_fee: int = Field(default=15, ge=0)
    cash_out_min: int = 500
    cash_out_max: int = 100_000


class LoanSettings(BaseModel):
    processing_fee_rate: float = Field(default=0.008, ge=0, lt=1)
    default_interest_rate: float = Field(default=0.03, ge=0)
    max_interest_rate: float = Field(default=1.0, ge=0)
    default_term_days: int = Field(default=7, gt=0)
    min_principal: int = 100
    max_principal: int = 100_000
    sweep_interval_seconds: int = Field(default=0, ge=0)


class FeedSettings(BaseModel):
    queue_size: int = Field(default=100, gt=0)
    heartbeat_interval: int = 30
    timeout: int = 300


class ClientSettings(BaseModel):
    base_url: str = "http://localhost:8000"
    debounce_ms: int = 500
    success_grace_seconds: float = 1.0
    error_purge_seconds: float = 3.0
    poll_interval_seconds: float = 15.0


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    project_name: str = "Credit Ledger"
    api_prefix: str = "/api"

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    ledger: LedgerSettings = LedgerSettings()
    cash: CashSettings = CashSettings()
    loans: LoanSettings = LoanSettings()
    feed: FeedSettings = FeedSettings()
    client: ClientSettings = ClientSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm

    @property
    def access_token_expire_minutes(self) -> int:
        return self.security.access_token_expire_minutes

    @property
    def ws_heartbeat_interval(self) -> int:
        return self.feed.heartbeat_interval

    @property
    def ws_timeout(self) -> int:
        return self.feed.timeout


@lru_cache()
def get_settings() -> Settings:
    return Settings()
