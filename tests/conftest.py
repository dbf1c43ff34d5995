"""
Shared fixtures: a fully wired banking system over in-memory storage
"""

from decimal import Decimal

import pytest

from retail_banking.api.dependencies import BankingSystem
from retail_banking.config import BankConfig
from retail_banking.savings import DepositType
from retail_banking.storage import InMemoryStorage


@pytest.fixture
def config():
    return BankConfig(database_url="memory://", log_format="text")


@pytest.fixture
def system(config):
    banking_system = BankingSystem(storage=InMemoryStorage(), config=config)
    yield banking_system
    banking_system.close()


@pytest.fixture
def green_product(system):
    """The group green savings product, id 1"""
    return system.product_catalog.publish_product(
        name="Green World Savings",
        base_rate=Decimal("1.8"),
        period_months=12,
        deposit_type=DepositType.REGULAR,
        product_id=1
    )


@pytest.fixture
def customer(system):
    return system.customer_directory.register_customer(
        username="kimhana",
        name="Kim Hana",
        email="hana@example.com",
        phone_number="010-1234-5678"
    )


@pytest.fixture
def checking(system, customer):
    """Demand deposit account holding 2,000,000 won"""
    return system.deposit_service.open_account(
        customer_id=customer.id,
        account_name="Everyday Checking",
        initial_balance=2_000_000
    )
