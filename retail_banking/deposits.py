"""
Demand Deposit Module

Checking-style accounts that fund savings originations. Balances are integer
won and never go negative; every mutation is a load-modify-save inside
``storage.atomic()``.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from enum import Enum
import random
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .exceptions import (
    AccountNotFoundError,
    AccountNumberCollisionError,
    InsufficientFundsError,
    InvalidAmountError,
    NonZeroBalanceCloseError,
)
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.deposits")


class DepositAccountStatus(Enum):
    """Demand deposit account lifecycle states"""
    ACTIVE = "ACTIVE"
    DORMANT = "DORMANT"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


def random_account_number(bank_code: str, rng: Optional[random.Random] = None) -> str:
    """Format ``<bank_code>-NNNNNN-NNNNN`` from random digits"""
    rng = rng or random
    return f"{bank_code}-{rng.randrange(1000000):06d}-{rng.randrange(100000):05d}"


def generate_unique_account_number(
    is_taken: Callable[[str], bool],
    bank_code: str,
    max_attempts: int,
    generator: Optional[Callable[[], str]] = None
) -> str:
    """
    Draw account numbers until one is unused

    Raises:
        AccountNumberCollisionError: every attempt collided
    """
    generator = generator or (lambda: random_account_number(bank_code))
    for attempt in range(1, max_attempts + 1):
        candidate = generator()
        if not is_taken(candidate):
            return candidate
        logger.warning("Account number %s already in use (attempt %d of %d)",
                       candidate, attempt, max_attempts)
    raise AccountNumberCollisionError(
        f"Could not generate an unused account number after {max_attempts} attempts"
    )


@dataclass
class DemandDepositAccount(StorageRecord):
    """
    Demand deposit (checking) account
    """
    account_number: str
    customer_id: str
    account_name: str
    bank_code: str
    balance: int = 0
    is_active: bool = True
    status: DepositAccountStatus = DepositAccountStatus.ACTIVE
    open_date: date = field(default_factory=lambda: datetime.now(timezone.utc).date())

    def __post_init__(self):
        if self.balance < 0:
            raise ValueError("Account balance cannot be negative")

    @property
    def is_usable(self) -> bool:
        """Active flag set and status ACTIVE"""
        return self.is_active and self.status == DepositAccountStatus.ACTIVE

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
                f"Cannot close account {self.account_number} with balance {self.balance}"
            )
        self.is_active = False
        self.status = DepositAccountStatus.CLOSED


class DemandDepositService:
    """
    Opens demand deposit accounts and posts deposits and withdrawals
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 bank_code: str = "081", max_attempts: int = 5):
        self.storage = storage
        self.audit_trail = audit_trail
        self.bank_code = bank_code
        self.max_attempts = max_attempts
        self.table_name = "demand_deposit_accounts"

    def open_account(
        self,
        customer_id: str,
        account_name: str,
        initial_balance: int = 0,
        account_number: Optional[str] = None
    ) -> DemandDepositAccount:
        """
        Open a new demand deposit account

        Args:
            customer_id: ID of account owner
            account_name: Display name of the account
            initial_balance: Opening balance in won
            account_number: Specific account number (generated if not provided)

        Returns:
            Created DemandDepositAccount
        """
        if initial_balance < 0:
            raise InvalidAmountError(f"Opening balance cannot be negative, got {initial_balance}")

        with self.storage.atomic():
            if account_number is None:
                account_number = generate_unique_account_number(
                    self.account_number_exists, self.bank_code, self.max_attempts
                )
            elif self.account_number_exists(account_number):
                raise AccountNumberCollisionError(f"Account number {account_number} already in use")

            now = datetime.now(timezone.utc)
            account = DemandDepositAccount(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                account_number=account_number,
                customer_id=customer_id,
                account_name=account_name,
                bank_code=self.bank_code,
                balance=initial_balance,
                open_date=now.date()
            )
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_OPENED,
                entity_type="demand_deposit_account",
                entity_id=account.id,
                metadata={
                    "account_number": account_number,
                    "customer_id": customer_id,
                    "initial_balance": initial_balance
                }
            )

        log_action(logger, "info", f"Opened demand deposit account {account_number}",
                   customer_id=customer_id, action="open", resource="demand_deposit_account")
        return account

    def account_number_exists(self, account_number: str) -> bool:
        """Check whether an account number is already assigned"""
        return bool(self.storage.find(self.table_name, {"account_number": account_number}))

    def get_account_by_number(self, account_number: str) -> DemandDepositAccount:
        """
        Get account by account number

        Raises:
            AccountNotFoundError: no account has this number
        """
        accounts = self.storage.find(self.table_name, {"account_number": account_number})
        if not accounts:
            raise AccountNotFoundError(f"Demand deposit account {account_number} not found")
        return self._account_from_dict(accounts[0])

    def get_customer_accounts(self, customer_id: str) -> List[DemandDepositAccount]:
        """Get all demand deposit accounts for a customer"""
        accounts_data = self.storage.find(self.table_name, {"customer_id": customer_id})
        return [self._account_from_dict(data) for data in accounts_data]

    def get_active_accounts(self, customer_id: str) -> List[DemandDepositAccount]:
        """Accounts that are flagged active and in ACTIVE status"""
        return [a for a in self.get_customer_accounts(customer_id) if a.is_usable]

    def deposit(self, account_number: str, amount: int) -> DemandDepositAccount:
        """Credit an account"""
        with self.storage.atomic():
            account = self.get_account_by_number(account_number)
            account.deposit(amount)
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.DEPOSIT_POSTED,
                entity_type="demand_deposit_account",
                entity_id=account.id,
                metadata={"amount": amount, "balance": account.balance}
            )

        log_action(logger, "info", f"Deposited {amount} to {account_number}",
                   customer_id=account.customer_id, action="deposit",
                   resource="demand_deposit_account", extra={"balance": account.balance})
        return account

    def withdraw(self, account_number: str, amount: int) -> DemandDepositAccount:
        """
        Debit an account

        Raises:
            InvalidAmountError: amount is not positive
            InsufficientFundsError: amount exceeds the balance; nothing is written
        """
        with self.storage.atomic():
            account = self.get_account_by_number(account_number)
            account.withdraw(amount)
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.WITHDRAWAL_POSTED,
                entity_type="demand_deposit_account",
                entity_id=account.id,
                metadata={"amount": amount, "balance": account.balance}
            )

        log_action(logger, "info", f"Withdrew {amount} from {account_number}",
                   customer_id=account.customer_id, action="withdraw",
                   resource="demand_deposit_account", extra={"balance": account.balance})
        return account

    def close_account(self, account_number: str) -> DemandDepositAccount:
        """Close a zero-balance account"""
        with self.storage.atomic():
            account = self.get_account_by_number(account_number)
            account.close()
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_CLOSED,
                entity_type="demand_deposit_account",
                entity_id=account.id,
                metadata={"account_number": account_number}
            )

        log_action(logger, "info", f"Closed demand deposit account {account_number}",
                   customer_id=account.customer_id, action="close", resource="demand_deposit_account")
        return account

    def _save_account(self, account: DemandDepositAccount) -> None:
        """Save account to storage"""
        self.storage.save(self.table_name, account.id, self._account_to_dict(account))

    def _account_to_dict(self, account: DemandDepositAccount) -> Dict:
        """Convert DemandDepositAccount to dictionary for storage"""
        result = account.to_dict()
        result['status'] = account.status.value
        return result

    def _account_from_dict(self, data: Dict) -> DemandDepositAccount:
        """Convert dictionary to DemandDepositAccount"""
        return DemandDepositAccount(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            customer_id=data['customer_id'],
            account_name=data['account_name'],
            bank_code=data['bank_code'],
            balance=int(data['balance']),
            is_active=data.get('is_active', True),
            status=DepositAccountStatus(data.get('status', DepositAccountStatus.ACTIVE.value)),
            open_date=date.fromisoformat(data['open_date'])
        )
