"""
Savings Module

Savings products, savings accounts and the origination transaction that opens
a savings account and funds it from one of the customer's demand deposit
accounts in a single unit of work.

Origination runs entirely inside ``storage.atomic()``: if the withdrawal from
the source account fails, the freshly persisted savings account and every
audit event written for it roll back with it.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from enum import Enum
import calendar
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import CustomerDirectory
from .deposits import DemandDepositService, generate_unique_account_number
from .exceptions import (
    AccountNotFoundError,
    BankingError,
    InsufficientFundsError,
    InvalidAmountError,
    NonZeroBalanceCloseError,
    ProductNotFoundError,
    TransactionFailedError,
)
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.savings")


class DepositType(Enum):
    """How customers pay into a savings product"""
    REGULAR = "REGULAR"  # Fixed monthly installment
    FREE = "FREE"        # Any amount, any time


class SavingsAccountStatus(Enum):
    """Savings account lifecycle states"""
    ACTIVE = "ACTIVE"
    MATURED = "MATURED"
    CLOSED = "CLOSED"


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping to the last day of a shorter month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass
class SavingsProduct(StorageRecord):
    """
    Published savings product; immutable once published
    """
    product_id: int
    name: str
    base_rate: Decimal
    period_months: int
    deposit_type: DepositType = DepositType.REGULAR
    description: Optional[str] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    is_active: bool = True

    def __post_init__(self):
        if self.period_months <= 0:
            raise ValueError("Savings product period must be at least one month")
        if self.base_rate < 0:
            raise ValueError("Base rate cannot be negative")


@dataclass
class AutoTransferConfig:
    """Declarative monthly auto-transfer settings; nothing executes them here"""
    enabled: bool = False
    transfer_day: Optional[int] = None
    monthly_amount: Optional[int] = None
    withdrawal_account_number: Optional[str] = None
    withdrawal_bank_name: Optional[str] = None

    def __post_init__(self):
        if self.transfer_day is not None and not 1 <= self.transfer_day <= 31:
            raise InvalidAmountError(f"Transfer day must be between 1 and 31, got {self.transfer_day}")
        if self.monthly_amount is not None and self.monthly_amount < 0:
            raise InvalidAmountError("Monthly transfer amount cannot be negative")


@dataclass
class SavingsAccount(StorageRecord):
    """
    Savings account opened against a savings product
    """
    account_number: str
    customer_id: str
    product_id: int
    account_name: str
    base_rate: Decimal
    final_rate: Decimal
    start_date: date
    maturity_date: date
    preferential_rate: Optional[Decimal] = None
    balance: int = 0
    auto_transfer: AutoTransferConfig = field(default_factory=AutoTransferConfig)
    is_active: bool = True
    status: SavingsAccountStatus = SavingsAccountStatus.ACTIVE

    def __post_init__(self):
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")

    @property
    def is_usable(self) -> bool:
        """Active flag set and status ACTIVE"""
        return self.is_active and self.status == SavingsAccountStatus.ACTIVE

    def deposit(self, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Deposit amount must be positive, got {amount}")
        self.balance += amount

    def withdraw(self, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Withdrawal amount must be positive, got {amount}")
        if amount > self.balance:
            raise InsufficientFundsError(
                f"Insufficient balance in {self.account_number}: "
                f"requested {amount}, available {self.balance}"
            )
        self.balance -= amount

    def close(self) -> None:
        if self.balance != 0:
            raise NonZeroBalanceCloseError(
                f"Cannot close savings account {self.account_number} with balance {self.balance}"
            )
        self.is_active = False
        self.status = SavingsAccountStatus.CLOSED


class SavingsProductCatalog:
    """
    Publishes savings products and looks them up by their integer id
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "savings_products"

    def publish_product(
        self,
        name: str,
        base_rate: Decimal,
        period_months: int,
        deposit_type: DepositType = DepositType.REGULAR,
        product_id: Optional[int] = None,
        description: Optional[str] = None,
        min_amount: Optional[int] = None,
        max_amount: Optional[int] = None
    ) -> SavingsProduct:
        """
        Publish a savings product

        Args:
            name: Product name shown to customers
            base_rate: Annual base rate in percent
            period_months: Term of the product in months
            deposit_type: REGULAR or FREE installments
            product_id: Specific product id (next free id if not provided)
            description: Optional marketing text
            min_amount: Optional minimum installment
            max_amount: Optional maximum installment

        Returns:
            Published SavingsProduct
        """
        with self.storage.atomic():
            if product_id is None:
                product_id = self._next_product_id()
            elif self.storage.exists(self.table_name, str(product_id)):
                raise ValueError(f"Savings product {product_id} already exists")

            now = datetime.now(timezone.utc)
            product = SavingsProduct(
                id=str(product_id),
                created_at=now,
                updated_at=now,
                product_id=product_id,
                name=name,
                base_rate=Decimal(str(base_rate)),
                period_months=period_months,
                deposit_type=deposit_type,
                description=description,
                min_amount=min_amount,
                max_amount=max_amount
            )
            self.storage.save(self.table_name, product.id, self._product_to_dict(product))

            self.audit_trail.log_event(
                event_type=AuditEventType.PRODUCT_PUBLISHED,
                entity_type="savings_product",
                entity_id=product.id,
                metadata={
                    "name": name,
                    "base_rate": product.base_rate,
                    "period_months": period_months,
                    "deposit_type": deposit_type.value
                }
            )

        log_action(logger, "info", f"Published savings product {product_id}",
                   action="publish", resource="savings_product")
        return product

    def get_product(self, product_id: int) -> SavingsProduct:
        """
        Get product by id

        Raises:
            ProductNotFoundError: no product has this id
        """
        data = self.storage.load(self.table_name, str(product_id))
        if not data:
            raise ProductNotFoundError(f"Savings product {product_id} not found")
        return self._product_from_dict(data)

    def list_active_products(self) -> List[SavingsProduct]:
        """All products open for new accounts"""
        products = [self._product_from_dict(d) for d in self.storage.find(self.table_name, {"is_active": True})]
        products.sort(key=lambda p: p.product_id)
        return products

    def list_products_by_type(self, deposit_type: DepositType) -> List[SavingsProduct]:
        """Active products of one deposit type"""
        return [p for p in self.list_active_products() if p.deposit_type == deposit_type]

    def _next_product_id(self) -> int:
        ids = [int(d['product_id']) for d in self.storage.load_all(self.table_name)]
        return max(ids, default=0) + 1

    def _product_to_dict(self, product: SavingsProduct) -> Dict:
        """Convert SavingsProduct to dictionary for storage"""
        result = product.to_dict()
        result['deposit_type'] = product.deposit_type.value
        return result

    def _product_from_dict(self, data: Dict) -> SavingsProduct:
        """Convert dictionary to SavingsProduct"""
        return SavingsProduct(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            product_id=int(data['product_id']),
            name=data['name'],
            base_rate=Decimal(data['base_rate']),
            period_months=int(data['period_months']),
            deposit_type=DepositType(data['deposit_type']),
            description=data.get('description'),
            min_amount=data.get('min_amount'),
            max_amount=data.get('max_amount'),
            is_active=data.get('is_active', True)
        )


class SavingsService:
    """
    Originates savings accounts and posts deposits and withdrawals to them
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        customers: CustomerDirectory,
        catalog: SavingsProductCatalog,
        deposits: DemandDepositService,
        bank_code: str = "506",
        account_name: str = "Hana Green World Savings",
        max_attempts: int = 5,
        account_number_generator: Optional[Callable[[], str]] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.customers = customers
        self.catalog = catalog
        self.deposits = deposits
        self.bank_code = bank_code
        self.account_name = account_name
        self.max_attempts = max_attempts
        self._account_number_generator = account_number_generator
        self._today = today or (lambda: datetime.now(timezone.utc).date())
        self.table_name = "savings_accounts"

    def generate_account_number(self) -> str:
        """
        Draw an unused ``<bank_code>-NNNNNN-NNNNN`` account number

        Raises:
            AccountNumberCollisionError: every attempt collided
        """
        return generate_unique_account_number(
            self.account_number_exists,
            self.bank_code,
            self.max_attempts,
            generator=self._account_number_generator
        )

    def account_number_exists(self, account_number: str) -> bool:
        """Check whether a savings account number is already assigned"""
        return bool(self.storage.find(self.table_name, {"account_number": account_number}))

    def originate(
        self,
        customer_phone: str,
        product_id: int,
        preferential_rate: Optional[Decimal] = None,
        application_amount: int = 0,
        auto_transfer: Optional[AutoTransferConfig] = None,
        allow_unfunded_deposit: bool = False,
        actor: Optional[str] = None
    ) -> SavingsAccount:
        """
        Open a savings account and fund it in one unit of work

        Args:
            customer_phone: Phone number of the customer, dashed or digits only
            product_id: Savings product to open
            preferential_rate: Bonus rate added to the product's base rate
            application_amount: Initial funding in won, moved from the
                auto-transfer withdrawal account
            auto_transfer: Auto-transfer settings, stored as given
            allow_unfunded_deposit: Credit the funding without a withdrawal
                account (explicit cash deposit)
            actor: Requesting service, recorded in the audit trail

        Returns:
            The persisted SavingsAccount with its final balance

        Raises:
            CustomerNotFoundError: no customer owns the phone number
            ProductNotFoundError: product does not exist
            AccountNumberCollisionError: no unused account number was found
            InvalidAmountError: negative funding, or funding without a source
            AccountNotFoundError: withdrawal account missing or not the customer's
            InsufficientFundsError: withdrawal account cannot cover the funding
            TransactionFailedError: any unexpected failure; nothing is persisted
        """
        if application_amount < 0:
            raise InvalidAmountError(f"Application amount cannot be negative, got {application_amount}")

        auto_transfer = auto_transfer or AutoTransferConfig()
        source_account_number = auto_transfer.withdrawal_account_number or None

        try:
            with self.storage.atomic():
                customer = self.customers.find_by_phone(customer_phone)
                product = self.catalog.get_product(product_id)

                if application_amount > 0 and source_account_number is None and not allow_unfunded_deposit:
                    raise InvalidAmountError(
                        "A withdrawal account is required to fund a new savings account"
                    )

                account_number = self.generate_account_number()

                if preferential_rate is not None:
                    preferential_rate = Decimal(str(preferential_rate))
                    final_rate = product.base_rate + preferential_rate
                else:
                    final_rate = product.base_rate

                start_date = self._today()
                now = datetime.now(timezone.utc)
                account = SavingsAccount(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    account_number=account_number,
                    customer_id=customer.id,
                    product_id=product.product_id,
                    account_name=self.account_name,
                    base_rate=product.base_rate,
                    preferential_rate=preferential_rate,
                    final_rate=final_rate,
                    start_date=start_date,
                    maturity_date=add_months(start_date, product.period_months),
                    auto_transfer=auto_transfer
                )
                self._save_account(account)

                self.audit_trail.log_event(
                    event_type=AuditEventType.SAVINGS_ORIGINATED,
                    entity_type="savings_account",
                    entity_id=account.id,
                    metadata={
                        "account_number": account_number,
                        "customer_id": customer.id,
                        "product_id": product.product_id,
                        "final_rate": final_rate,
                        "application_amount": application_amount
                    },
                    actor=actor
                )

                if application_amount > 0:
                    if source_account_number is not None:
                        source = self.deposits.get_account_by_number(source_account_number)
                        if source.customer_id != customer.id:
                            raise AccountNotFoundError(
                                f"Withdrawal account {source_account_number} does not belong to the customer"
                            )
                        self.deposits.withdraw(source_account_number, application_amount)
                    else:
                        logger.warning("Crediting %s without a withdrawal account", account_number)

                    account = self.deposit_to_savings(account_number, application_amount)

        except BankingError as e:
            logger.warning("Savings origination failed: %s", e)
            raise
        except Exception as e:
            logger.error("Savings origination aborted: %s", e, exc_info=True)
            raise TransactionFailedError(f"Savings origination failed: {e}") from e

        log_action(logger, "info", f"Originated savings account {account.account_number}",
                   customer_id=account.customer_id, action="originate", resource="savings_account",
                   extra={"product_id": account.product_id, "balance": account.balance,
                          "final_rate": str(account.final_rate)})
        return account

    def get_savings_account(self, account_number: str) -> SavingsAccount:
        """
        Get savings account by number

        Raises:
            AccountNotFoundError: no savings account has this number
        """
        accounts = self.storage.find(self.table_name, {"account_number": account_number})
        if not accounts:
            raise AccountNotFoundError(f"Savings account {account_number} not found")
        return self._account_from_dict(accounts[0])

    def get_customer_savings_accounts(self, customer_id: str) -> List[SavingsAccount]:
        """Get all savings accounts for a customer"""
        accounts_data = self.storage.find(self.table_name, {"customer_id": customer_id})
        return [self._account_from_dict(data) for data in accounts_data]

    def deposit_to_savings(self, account_number: str, amount: int) -> SavingsAccount:
        """Credit a savings account"""
        with self.storage.atomic():
            account = self.get_savings_account(account_number)
            account.deposit(amount)
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.DEPOSIT_POSTED,
                entity_type="savings_account",
                entity_id=account.id,
                metadata={"amount": amount, "balance": account.balance}
            )
        return account

    def withdraw_from_savings(self, account_number: str, amount: int) -> SavingsAccount:
        """Debit a savings account"""
        with self.storage.atomic():
            account = self.get_savings_account(account_number)
            account.withdraw(amount)
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.WITHDRAWAL_POSTED,
                entity_type="savings_account",
                entity_id=account.id,
                metadata={"amount": amount, "balance": account.balance}
            )
        return account

    def close_savings_account(self, account_number: str) -> SavingsAccount:
        """Close a zero-balance savings account"""
        with self.storage.atomic():
            account = self.get_savings_account(account_number)
            account.close()
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_CLOSED,
                entity_type="savings_account",
                entity_id=account.id,
                metadata={"account_number": account_number}
            )

        log_action(logger, "info", f"Closed savings account {account_number}",
                   customer_id=account.customer_id, action="close", resource="savings_account")
        return account

    def _save_account(self, account: SavingsAccount) -> None:
        """Save account to storage"""
        self.storage.save(self.table_name, account.id, self._account_to_dict(account))

    def _account_to_dict(self, account: SavingsAccount) -> Dict:
        """Convert SavingsAccount to dictionary for storage"""
        result = account.to_dict()
        result['status'] = account.status.value
        if account.preferential_rate is not None:
            result['preferential_rate'] = str(account.preferential_rate)
        return result

    def _account_from_dict(self, data: Dict) -> SavingsAccount:
        """Convert dictionary to SavingsAccount"""
        preferential_rate = None
        if data.get('preferential_rate') is not None:
            preferential_rate = Decimal(data['preferential_rate'])

        return SavingsAccount(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            customer_id=data['customer_id'],
            product_id=int(data['product_id']),
            account_name=data['account_name'],
            base_rate=Decimal(data['base_rate']),
            preferential_rate=preferential_rate,
            final_rate=Decimal(data['final_rate']),
            start_date=date.fromisoformat(data['start_date']),
            maturity_date=date.fromisoformat(data['maturity_date']),
            balance=int(data['balance']),
            auto_transfer=AutoTransferConfig(**(data.get('auto_transfer') or {})),
            is_active=data.get('is_active', True),
            status=SavingsAccountStatus(data.get('status', SavingsAccountStatus.ACTIVE.value))
        )
