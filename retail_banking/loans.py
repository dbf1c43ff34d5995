"""
Loan Holdings Module

Loan products and loan accounts as seen by the integration API. Loan
servicing (disbursement, repayment schedules) happens elsewhere; this module
records holdings so they can be aggregated.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .exceptions import ProductNotFoundError
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.loans")


class LoanStatus(Enum):
    """Loan account states"""
    ACTIVE = "ACTIVE"
    PAID_OFF = "PAID_OFF"
    OVERDUE = "OVERDUE"


@dataclass
class LoanProduct(StorageRecord):
    """Loan product"""
    name: str
    interest_rate: Decimal
    loan_type: Optional[str] = None
    is_active: bool = True


@dataclass
class LoanAccount(StorageRecord):
    """
    Loan held by a customer
    """
    account_number: str
    customer_id: str
    product_id: str
    loan_amount: int
    remaining_amount: int
    interest_rate: Decimal
    monthly_payment: int
    start_date: date
    maturity_date: date
    status: LoanStatus = LoanStatus.ACTIVE

    def __post_init__(self):
        if self.loan_amount <= 0:
            raise ValueError("Loan amount must be positive")
        if not 0 <= self.remaining_amount <= self.loan_amount:
            raise ValueError("Remaining amount must be between zero and the loan amount")


class LoanManager:
    """
    Registers loan products and the loans customers hold
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.products_table = "loan_products"
        self.loans_table = "loan_accounts"

    def create_product(self, name: str, interest_rate: Decimal,
                       loan_type: Optional[str] = None) -> LoanProduct:
        """Register a loan product"""
        now = datetime.now(timezone.utc)
        product = LoanProduct(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            interest_rate=Decimal(str(interest_rate)),
            loan_type=loan_type
        )
        self.storage.save(self.products_table, product.id, product.to_dict())
        return product

    def get_product(self, product_id: str) -> LoanProduct:
        """Get loan product by ID"""
        data = self.storage.load(self.products_table, product_id)
        if not data:
            raise ProductNotFoundError(f"Loan product {product_id} not found")
        return LoanProduct(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            name=data['name'],
            interest_rate=Decimal(data['interest_rate']),
            loan_type=data.get('loan_type'),
            is_active=data.get('is_active', True)
        )

    def register_loan(
        self,
        customer_id: str,
        product_id: str,
        account_number: str,
        loan_amount: int,
        monthly_payment: int,
        start_date: date,
        maturity_date: date,
        remaining_amount: Optional[int] = None,
        interest_rate: Optional[Decimal] = None
    ) -> LoanAccount:
        """
        Record a loan held by a customer

        Args:
            customer_id: ID of the borrower
            product_id: Loan product
            account_number: Loan account number
            loan_amount: Principal in won
            monthly_payment: Scheduled monthly payment in won
            start_date: Disbursement date
            maturity_date: Final repayment date
            remaining_amount: Outstanding principal (defaults to the full amount)
            interest_rate: Contract rate (defaults to the product rate)

        Returns:
            Created LoanAccount
        """
        product = self.get_product(product_id)
        now = datetime.now(timezone.utc)
        loan = LoanAccount(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_number=account_number,
            customer_id=customer_id,
            product_id=product.id,
            loan_amount=loan_amount,
            remaining_amount=loan_amount if remaining_amount is None else remaining_amount,
            interest_rate=product.interest_rate if interest_rate is None else Decimal(str(interest_rate)),
            monthly_payment=monthly_payment,
            start_date=start_date,
            maturity_date=maturity_date
        )

        with self.storage.atomic():
            self.storage.save(self.loans_table, loan.id, self._loan_to_dict(loan))
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_OPENED,
                entity_type="loan_account",
                entity_id=loan.id,
                metadata={
                    "account_number": account_number,
                    "customer_id": customer_id,
                    "loan_amount": loan_amount
                }
            )

        log_action(logger, "info", f"Registered loan {account_number}",
                   customer_id=customer_id, action="register", resource="loan_account")
        return loan

    def get_customer_loans(self, customer_id: str) -> List[LoanAccount]:
        """Get all loans for a customer"""
        loans_data = self.storage.find(self.loans_table, {"customer_id": customer_id})
        return [self._loan_from_dict(data) for data in loans_data]

    def _loan_to_dict(self, loan: LoanAccount) -> Dict:
        result = loan.to_dict()
        result['status'] = loan.status.value
        return result

    def _loan_from_dict(self, data: Dict) -> LoanAccount:
        return LoanAccount(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            customer_id=data['customer_id'],
            product_id=data['product_id'],
            loan_amount=int(data['loan_amount']),
            remaining_amount=int(data['remaining_amount']),
            interest_rate=Decimal(data['interest_rate']),
            monthly_payment=int(data['monthly_payment']),
            start_date=date.fromisoformat(data['start_date']),
            maturity_date=date.fromisoformat(data['maturity_date']),
            status=LoanStatus(data.get('status', LoanStatus.ACTIVE.value))
        )
