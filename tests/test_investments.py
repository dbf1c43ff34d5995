"""
Test suite for investment holdings
"""

import pytest
from datetime import date

from retail_banking.storage import InMemoryStorage
from retail_banking.audit import AuditTrail
from retail_banking.investments import InvestmentManager, InvestmentStatus, RiskLevel
from retail_banking.exceptions import AccountNotFoundError, ProductNotFoundError


class TestInvestmentManager:
    """Test investment products, positions and valuation"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.manager = InvestmentManager(self.storage, AuditTrail(self.storage))
        self.product = self.manager.create_product("Global Equity Fund", RiskLevel.HIGH)

    def test_product_round_trip(self):
        loaded = self.manager.get_product(self.product.id)
        assert loaded.name == "Global Equity Fund"
        assert loaded.risk_level == RiskLevel.HIGH

    def test_unknown_product(self):
        with pytest.raises(ProductNotFoundError):
            self.manager.register_investment("CUST001", "missing", "INV-0001", 1_000_000)

    def test_register_position(self):
        position = self.manager.register_investment(
            "CUST001", self.product.id, "INV-0001", 1_000_000,
            subscription_date=date(2024, 2, 1)
        )

        assert position.current_value == 1_000_000
        assert position.status == InvestmentStatus.ACTIVE

        stored = self.manager.get_customer_investments("CUST001")
        assert len(stored) == 1
        assert stored[0].subscription_date == date(2024, 2, 1)

    def test_update_valuation(self):
        self.manager.register_investment("CUST001", self.product.id, "INV-0001", 1_000_000)

        updated = self.manager.update_valuation("INV-0001", 1_250_000)
        assert updated.current_value == 1_250_000
        assert self.manager.get_customer_investments("CUST001")[0].current_value == 1_250_000

    def test_update_valuation_rejects_bad_input(self):
        self.manager.register_investment("CUST001", self.product.id, "INV-0001", 1_000_000)

        with pytest.raises(AccountNotFoundError):
            self.manager.update_valuation("INV-9999", 10)
        with pytest.raises(ValueError):
            self.manager.update_valuation("INV-0001", -1)
        assert self.manager.get_customer_investments("CUST001")[0].current_value == 1_000_000

    def test_non_positive_investment(self):
        with pytest.raises(ValueError):
            self.manager.register_investment("CUST001", self.product.id, "INV-0001", 0)
