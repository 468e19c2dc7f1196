"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class LoanLedgerConfig(BaseSettings):
    """Loan ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="LOAN_LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage configuration
    database_url: str = "sqlite:///loan_ledger.db"
    use_sqlite: bool = False  # In-memory storage unless opted in

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    rounding_epsilon: str = "0.01"  # Tolerance for principal + interest == total
    interest_periods_per_year: int = 12  # Periodicity of the ad-hoc payment split
    forbid_principal_below_paid: bool = True

    @property
    def sqlite_path(self) -> str:
        """Filesystem path part of a sqlite:/// URL"""
        prefix = "sqlite:///"
        if self.database_url.startswith(prefix):
            return self.database_url[len(prefix):] or ":memory:"
        return self.database_url


# Global configuration instance
config = LoanLedgerConfig()


def get_config() -> LoanLedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LoanLedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LoanLedgerConfig()
    return config
