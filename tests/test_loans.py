"""
Test suite for loan holdings
"""

import pytest
from datetime import date
from decimal import Decimal

from retail_banking.storage import InMemoryStorage
from retail_banking.audit import AuditTrail, AuditEventType
from retail_banking.loans import LoanManager, LoanStatus
from retail_banking.exceptions import ProductNotFoundError


class TestLoanManager:
    """Test loan product and loan account registration"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.manager = LoanManager(self.storage, self.audit_trail)
        self.product = self.manager.create_product("Jeonse Loan", Decimal("3.9"), loan_type="HOUSING")

    def register(self, **kwargs):
        params = dict(
            customer_id="CUST001",
            product_id=self.product.id,
            account_number="LN-0001",
            loan_amount=10_000_000,
            monthly_payment=450_000,
            start_date=date(2024, 1, 1),
            maturity_date=date(2026, 1, 1)
        )
        params.update(kwargs)
        return self.manager.register_loan(**params)

    def test_product_round_trip(self):
        loaded = self.manager.get_product(self.product.id)
        assert loaded.name == "Jeonse Loan"
        assert loaded.interest_rate == Decimal("3.9")
        assert loaded.loan_type == "HOUSING"

    def test_unknown_product(self):
        with pytest.raises(ProductNotFoundError):
            self.manager.get_product("missing")
        with pytest.raises(ProductNotFoundError):
            self.register(product_id="missing")

    def test_register_defaults(self):
        loan = self.register()

        assert loan.remaining_amount == 10_000_000
        assert loan.interest_rate == Decimal("3.9")
        assert loan.status == LoanStatus.ACTIVE

        events = self.audit_trail.get_events_for_entity("loan_account", loan.id)
        assert [e.event_type for e in events] == [AuditEventType.ACCOUNT_OPENED]

    def test_register_with_contract_terms(self):
        loan = self.register(remaining_amount=4_000_000, interest_rate=Decimal("4.2"))
        stored = self.manager.get_customer_loans("CUST001")[0]

        assert stored.remaining_amount == 4_000_000
        assert stored.interest_rate == Decimal("4.2")
        assert stored.maturity_date == date(2026, 1, 1)
        assert stored.id == loan.id

    @pytest.mark.parametrize("kwargs", [
        {"loan_amount": 0},
        {"remaining_amount": -1},
        {"remaining_amount": 20_000_000},
    ])
    def test_invalid_amounts(self, kwargs):
        with pytest.raises(ValueError):
            self.register(**kwargs)
        assert self.manager.get_customer_loans("CUST001") == []

    def test_customer_loans_are_isolated(self):
        self.register()
        self.register(customer_id="CUST002", account_number="LN-0002")

        assert [loan.account_number for loan in self.manager.get_customer_loans("CUST001")] == ["LN-0001"]
        assert self.manager.get_customer_loans("CUST003") == []
