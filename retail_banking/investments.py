"""
Investment Holdings Module

Investment products (funds) and the positions customers hold in them.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .exceptions import AccountNotFoundError, ProductNotFoundError
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.investments")


class RiskLevel(Enum):
    """Product risk grade"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class InvestmentStatus(Enum):
    """Investment account states"""
    ACTIVE = "ACTIVE"
    REDEEMED = "REDEEMED"


@dataclass
class InvestmentProduct(StorageRecord):
    """Investment product"""
    name: str
    risk_level: RiskLevel = RiskLevel.MEDIUM
    is_active: bool = True


@dataclass
class InvestmentAccount(StorageRecord):
    """Position held by a customer"""
    account_number: str
    customer_id: str
    product_id: str
    investment_amount: int
    current_value: int
    subscription_date: date = field(default_factory=lambda: datetime.now(timezone.utc).date())
    status: InvestmentStatus = InvestmentStatus.ACTIVE

    def __post_init__(self):
        if self.investment_amount <= 0:
            raise ValueError("Investment amount must be positive")
        if self.current_value < 0:
            raise ValueError("Current value cannot be negative")


class InvestmentManager:
    """
    Registers investment products and customer positions
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.products_table = "investment_products"
        self.accounts_table = "investment_accounts"

    def create_product(self, name: str, risk_level: RiskLevel = RiskLevel.MEDIUM) -> InvestmentProduct:
        """Register an investment product"""
        now = datetime.now(timezone.utc)
        product = InvestmentProduct(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            risk_level=risk_level
        )
        data = product.to_dict()
        data['risk_level'] = risk_level.value
        self.storage.save(self.products_table, product.id, data)
        return product

    def get_product(self, product_id: str) -> InvestmentProduct:
        """Get investment product by ID"""
        data = self.storage.load(self.products_table, product_id)
        if not data:
            raise ProductNotFoundError(f"Investment product {product_id} not found")
        return InvestmentProduct(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            risk_level=RiskLevel(data['risk_level']),
            is_active=data.get('is_active', True)
        )

    def register_investment(
        self,
        customer_id: str,
        product_id: str,
        account_number: str,
        investment_amount: int,
        current_value: Optional[int] = None,
        subscription_date: Optional[date] = None
    ) -> InvestmentAccount:
        """Record a customer's position in an investment product"""
        product = self.get_product(product_id)
        now = datetime.now(timezone.utc)
        account = InvestmentAccount(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_number=account_number,
            customer_id=customer_id,
            product_id=product.id,
            investment_amount=investment_amount,
            current_value=investment_amount if current_value is None else current_value,
            subscription_date=subscription_date or now.date()
        )

        with self.storage.atomic():
            self.storage.save(self.accounts_table, account.id, self._account_to_dict(account))
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_OPENED,
                entity_type="investment_account",
                entity_id=account.id,
                metadata={
                    "account_number": account_number,
                    "customer_id": customer_id,
                    "investment_amount": investment_amount
                }
            )

        log_action(logger, "info", f"Registered investment {account_number}",
                   customer_id=customer_id, action="register", resource="investment_account")
        return account

    def update_valuation(self, account_number: str, current_value: int) -> InvestmentAccount:
        """Mark a position to its latest value"""
        with self.storage.atomic():
            accounts = self.storage.find(self.accounts_table, {"account_number": account_number})
            if not accounts:
                raise AccountNotFoundError(f"Investment account {account_number} not found")
            account = self._account_from_dict(accounts[0])
            if current_value < 0:
                raise ValueError("Current value cannot be negative")
            account.current_value = current_value
            account.updated_at = datetime.now(timezone.utc)
            self.storage.save(self.accounts_table, account.id, self._account_to_dict(account))
        return account

    def get_customer_investments(self, customer_id: str) -> List[InvestmentAccount]:
        """Get all investment positions for a customer"""
        accounts_data = self.storage.find(self.accounts_table, {"customer_id": customer_id})
        return [self._account_from_dict(data) for data in accounts_data]

    def _account_to_dict(self, account: InvestmentAccount) -> Dict:
        result = account.to_dict()
        result['status'] = account.status.value
        return result

    def _account_from_dict(self, data: Dict) -> InvestmentAccount:
        return InvestmentAccount(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            customer_id=data['customer_id'],
            product_id=data['product_id'],
            investment_amount=int(data['investment_amount']),
            current_value=int(data['current_value']),
            subscription_date=date.fromisoformat(data['subscription_date']),
            status=InvestmentStatus(data.get('status', InvestmentStatus.ACTIVE.value))
        )
