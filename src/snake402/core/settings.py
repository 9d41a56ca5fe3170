"""Application settings and configuration.

This module defines all configuration options for the Snake402 server.
Settings are loaded from environment variables with sensible defaults.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Snake402", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./snake402.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Entry fee and network
    entry_fee_usdc: str = Field(default="0.001", alias="ENTRY_FEE_USDC")
    cdp_network: str = Field(default="base-sepolia", alias="CDP_NETWORK")
    cdp_recipient_address: str | None = Field(default=None, alias="CDP_RECIPIENT_ADDRESS")
    sandbox_mode: bool = Field(default=False, alias="SANDBOX_MODE")

    # Payment facilitator (x402 verify endpoint)
    facilitator_url: str = Field(
        default="http://localhost:3001/facilitator",
        alias="FACILITATOR_URL",
    )
    facilitator_timeout_seconds: float = Field(
        default=10.0,
        alias="FACILITATOR_TIMEOUT_SECONDS",
    )

    # Payout cycle
    payout_interval_seconds: int = Field(default=24 * 60 * 60, alias="PAYOUT_INTERVAL_SECONDS")
    payout_scheduler_enabled: bool = Field(default=True, alias="PAYOUT_SCHEDULER_ENABLED")
    payout_journal_path: str = Field(default="payouts.log", alias="PAYOUT_JOURNAL_PATH")
    session_max_unpaid_age_seconds: int = Field(
        default=15 * 60,
        alias="SESSION_MAX_UNPAID_AGE_SECONDS",
    )

    # On-chain settlement
    enable_onchain_payouts: bool = Field(default=False, alias="ENABLE_ONCHAIN_PAYOUTS")
    prize_pool_contract: str | None = Field(default=None, alias="PRIZE_POOL_CONTRACT")
    treasury_address: str | None = Field(default=None, alias="TREASURY_ADDRESS")
    private_key: str | None = Field(default=None, alias="PRIVATE_KEY")
    base_rpc_url: str | None = Field(default=None, alias="BASE_RPC_URL")
    usdc_decimals: int = Field(default=6, alias="USDC_DECIMALS")
    settlement_timeout_seconds: float = Field(
        default=300.0,
        alias="SETTLEMENT_TIMEOUT_SECONDS",
    )

    # Payout event stream
    event_queue_size: int = Field(default=100, alias="EVENT_QUEUE_SIZE")
    event_keepalive_seconds: float = Field(default=15.0, alias="EVENT_KEEPALIVE_SECONDS")

    # Administration
    admin_token: str | None = Field(default=None, alias="ADMIN_TOKEN")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def is_mainnet(self) -> bool:
        """Return True when running against Base mainnet (real funds)."""
        return self.cdp_network == "base"

    @property
    def entry_fee_amount(self) -> Decimal:
        """Return the entry fee as a Decimal in whole USDC."""
        return Decimal(self.entry_fee_usdc or "0")

    @property
    def onchain_payouts_enabled(self) -> bool:
        """Return True if every setting needed for on-chain settlement is present."""
        return bool(
            self.enable_onchain_payouts
            and self.prize_pool_contract
            and self.private_key
            and self.base_rpc_url
        )


settings = Settings()
