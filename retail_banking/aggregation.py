"""
Account Aggregation Module

Collects a customer's holdings across demand deposits, savings, loans and
investments into the uniform shapes the integration API returns.
Read-only: nothing here mutates storage.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .customers import Customer
from .deposits import DemandDepositService
from .savings import SavingsService, SavingsProductCatalog
from .loans import LoanManager
from .investments import InvestmentManager
from .exceptions import ProductNotFoundError


DEMAND_DEPOSIT = "DEMAND_DEPOSIT"
SAVINGS = "SAVINGS"
LOAN = "LOAN"
INVESTMENT = "INVESTMENT"


@dataclass
class AccountInfo:
    """One account in the customer snapshot"""
    account_number: str
    account_type: str
    account_name: str
    balance: int
    open_date: date
    status: str


@dataclass
class ProductInfo:
    """One product holding in the customer snapshot"""
    product_id: str
    product_name: str
    product_type: str
    amount: int
    status: str
    product_code: Optional[str] = None  # Account number of the holding
    remaining_amount: Optional[int] = None
    interest_rate: Optional[Decimal] = None
    base_rate: Optional[Decimal] = None
    preferential_rate: Optional[Decimal] = None
    monthly_payment: Optional[int] = None
    start_date: Optional[date] = None
    maturity_date: Optional[date] = None
    subscription_date: Optional[date] = None


@dataclass
class CustomerHoldings:
    accounts: List[AccountInfo] = field(default_factory=list)
    products: List[ProductInfo] = field(default_factory=list)


@dataclass
class ProductStatus:
    """Holding counts per product category"""
    savings_count: int
    loan_count: int
    investment_count: int
    deposit_count: int

    @property
    def total_products(self) -> int:
        return self.savings_count + self.loan_count + self.investment_count + self.deposit_count


@dataclass
class BalanceSummary:
    """Demand deposit balance across a customer's active accounts"""
    total_balance: int
    account_count: int


class AccountAggregator:
    """
    Read-only view over every holding a customer has
    """

    def __init__(
        self,
        deposits: DemandDepositService,
        savings: SavingsService,
        catalog: SavingsProductCatalog,
        loans: LoanManager,
        investments: InvestmentManager
    ):
        self.deposits = deposits
        self.savings = savings
        self.catalog = catalog
        self.loans = loans
        self.investments = investments

    def aggregate(self, customer: Customer) -> CustomerHoldings:
        """
        Build the accounts and products lists for a customer

        Accounts are the active demand deposit accounts followed by every
        savings account. Products are every savings, loan and investment
        holding.
        """
        holdings = CustomerHoldings()
        savings_accounts = self.savings.get_customer_savings_accounts(customer.id)
        product_names = self._savings_product_names(savings_accounts)

        for account in self.deposits.get_active_accounts(customer.id):
            holdings.accounts.append(AccountInfo(
                account_number=account.account_number,
                account_type=DEMAND_DEPOSIT,
                account_name=account.account_name,
                balance=account.balance,
                open_date=account.open_date,
                status=account.status.value
            ))

        for account in savings_accounts:
            holdings.accounts.append(AccountInfo(
                account_number=account.account_number,
                account_type=SAVINGS,
                account_name=product_names.get(account.product_id, account.account_name),
                balance=account.balance,
                open_date=account.start_date,
                status=account.status.value
            ))

        for account in savings_accounts:
            holdings.products.append(ProductInfo(
                product_id=str(account.product_id),
                product_name=product_names.get(account.product_id, account.account_name),
                product_type=SAVINGS,
                product_code=account.account_number,
                amount=account.balance,
                interest_rate=account.final_rate,
                base_rate=account.base_rate,
                preferential_rate=account.preferential_rate,
                start_date=account.start_date,
                maturity_date=account.maturity_date,
                subscription_date=account.created_at.date(),
                status=account.status.value
            ))

        for loan in self.loans.get_customer_loans(customer.id):
            holdings.products.append(ProductInfo(
                product_id=loan.product_id,
                product_name=self._loan_product_name(loan.product_id),
                product_type=LOAN,
                product_code=loan.account_number,
                amount=loan.loan_amount,
                remaining_amount=loan.remaining_amount,
                interest_rate=loan.interest_rate,
                monthly_payment=loan.monthly_payment,
                start_date=loan.start_date,
                maturity_date=loan.maturity_date,
                subscription_date=loan.created_at.date(),
                status=loan.status.value
            ))

        for investment in self.investments.get_customer_investments(customer.id):
            holdings.products.append(ProductInfo(
                product_id=investment.product_id,
                product_name=self._investment_product_name(investment.product_id),
                product_type=INVESTMENT,
                product_code=investment.account_number,
                amount=investment.current_value,
                subscription_date=investment.subscription_date,
                status=investment.status.value
            ))

        return holdings

    def total_balance(self, customer: Customer) -> int:
        """
        Net position: active savings balances plus investment values minus
        loan principal. Can be negative; this is not a cash balance.
        """
        savings_total = sum(
            a.balance for a in self.savings.get_customer_savings_accounts(customer.id) if a.is_active
        )
        investment_total = sum(
            i.current_value for i in self.investments.get_customer_investments(customer.id)
        )
        loan_total = sum(loan.loan_amount for loan in self.loans.get_customer_loans(customer.id))
        return savings_total + investment_total - loan_total

    def product_status(self, customer: Customer) -> ProductStatus:
        """Count holdings per category; deposits count active accounts only"""
        return ProductStatus(
            savings_count=len(self.savings.get_customer_savings_accounts(customer.id)),
            loan_count=len(self.loans.get_customer_loans(customer.id)),
            investment_count=len(self.investments.get_customer_investments(customer.id)),
            deposit_count=len(self.deposits.get_active_accounts(customer.id))
        )

    def deposit_balance_summary(self, customer: Customer) -> BalanceSummary:
        """Sum of balances over active demand deposit accounts"""
        accounts = self.deposits.get_active_accounts(customer.id)
        return BalanceSummary(
            total_balance=sum(a.balance for a in accounts),
            account_count=len(accounts)
        )

    def _savings_product_names(self, accounts) -> Dict[int, str]:
        names = {}
        for product_id in {a.product_id for a in accounts}:
            try:
                names[product_id] = self.catalog.get_product(product_id).name
            except ProductNotFoundError:
                continue
        return names

    def _loan_product_name(self, product_id: str) -> str:
        try:
            return self.loans.get_product(product_id).name
        except ProductNotFoundError:
            return product_id

    def _investment_product_name(self, product_id: str) -> str:
        try:
            return self.investments.get_product(product_id).name
        except ProductNotFoundError:
            return product_id
