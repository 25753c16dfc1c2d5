from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Core
    project_name: str = "GRX10 Ledger API"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Database
    database_url: str = "sqlite+pysqlite:///./ledger.db"
    sql_echo: bool = False

    # Identity
    secret_key: str = "grx10-ledger-dev-secret"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # Posting controls
    enforce_maker_checker: bool = True
    rounding_threshold: Decimal = Decimal("1.00")
    sequence_padding: int = 5

    # System accounts used by automatic postings
    cash_account_code: str = "1000"
    accounts_receivable_code: str = "1100"
    input_tax_account_code: str = "1300"
    accounts_payable_code: str = "2100"
    tax_payable_account_code: str = "2200"
    retained_earnings_code: str = "3100"
    sales_account_code: str = "4000"
    expense_account_code: str = "5000"
    rounding_account_code: str = "SYS-ROUNDING"
    suspense_account_code: str = "SYS-SUSPENSE"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="LEDGER_")

    def get_cors_origins(self) -> list[str]:
        """Return CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
