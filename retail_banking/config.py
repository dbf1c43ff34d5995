"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class BankConfig(BaseSettings):
    """Retail banking backend configuration"""

    # Database configuration
    database_url: str = "sqlite:///retail_banking.db"  # memory:// for in-memory storage

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_workers: int = 1

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Account numbering
    bank_code: str = "506"
    demand_deposit_bank_code: str = "081"
    account_number_max_attempts: int = 5

    # Savings origination
    savings_account_name: str = "Hana Green World Savings"

    # Group customer token
    group_token_issuer_suffix: str = "KIMHANA_001"

    # Product ownership check
    ownership_supported_product_ids: List[int] = [1]
    ownership_fallback_phone: Optional[str] = None  # None = deny unparseable tokens

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "BANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BankConfig()


def get_config() -> BankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BankConfig:
    """Reload configuration from environment"""
    global config
    config = BankConfig()
    return config
