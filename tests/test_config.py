"""
Tests for configuration and structured logging
"""

import io
import json
import logging

from retail_banking.config import BankConfig, get_config, reload_config
from retail_banking.api.dependencies import BankingSystem
from retail_banking.logging_config import JSONFormatter, log_action, setup_logging
from retail_banking.storage import InMemoryStorage, SQLiteStorage


class TestBankConfig:
    """Test defaults and environment overrides"""

    def test_defaults(self):
        config = BankConfig()
        assert config.bank_code == "506"
        assert config.demand_deposit_bank_code == "081"
        assert config.account_number_max_attempts == 5
        assert config.ownership_supported_product_ids == [1]
        assert config.ownership_fallback_phone is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BANK_BANK_CODE", "999")
        monkeypatch.setenv("BANK_OWNERSHIP_SUPPORTED_PRODUCT_IDS", "[1, 2]")
        monkeypatch.setenv("BANK_OWNERSHIP_FALLBACK_PHONE", "010-0000-0000")

        config = BankConfig()
        assert config.bank_code == "999"
        assert config.ownership_supported_product_ids == [1, 2]
        assert config.ownership_fallback_phone == "010-0000-0000"

    def test_reload_config(self, monkeypatch):
        monkeypatch.setenv("BANK_SAVINGS_ACCOUNT_NAME", "Green Savings")
        assert reload_config().savings_account_name == "Green Savings"
        assert get_config().savings_account_name == "Green Savings"

        monkeypatch.delenv("BANK_SAVINGS_ACCOUNT_NAME")
        assert reload_config().savings_account_name == "Hana Green World Savings"

    def test_system_uses_configured_storage(self):
        system = BankingSystem(config=BankConfig(database_url="sqlite://"))
        assert isinstance(system.storage, SQLiteStorage)
        system.close()

        system = BankingSystem(config=BankConfig(database_url="memory://"))
        assert isinstance(system.storage, InMemoryStorage)

    def test_system_passes_bank_codes(self):
        config = BankConfig(database_url="memory://", bank_code="777", enable_audit_logging=False)
        system = BankingSystem(config=config)
        assert system.savings_service.bank_code == "777"
        assert system.deposit_service.bank_code == "081"
        assert system.audit_trail.enabled is False


class TestStructuredLogging:
    """Test JSON log records"""

    def setup_method(self):
        """Set up test fixtures"""
        self.stream = io.StringIO()
        self.logger = logging.getLogger("retail_banking.test_config")
        self.logger.handlers = []
        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

    def test_log_action_fields(self):
        log_action(self.logger, "info", "Originated savings account",
                   customer_id="CUST001", action="originate", resource="savings_account",
                   extra={"balance": 1000})

        entry = json.loads(self.stream.getvalue())
        assert entry["message"] == "Originated savings account"
        assert entry["level"] == "INFO"
        assert entry["customer_id"] == "CUST001"
        assert entry["action"] == "originate"
        assert entry["extra"] == {"balance": 1000}
        assert "correlation_id" not in entry

    def test_below_level_is_dropped(self):
        log_action(self.logger, "debug", "noise")
        assert self.stream.getvalue() == ""

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("WARNING", logger_name="retail_banking.test_setup", log_format="text")
        logger = setup_logging("WARNING", logger_name="retail_banking.test_setup", log_format="text")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
