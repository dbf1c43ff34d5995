"""
Group Integration Service

Answers requests from sibling services of the financial group. Every request
identifies the customer with an opaque token (see ``tokens``).

Two failure policies coexist here:

- identity-resolution paths (customer info, savings origination, product
  status, account balance) are strict and raise on a bad token or an unknown
  customer;
- the product ownership check is fail-closed: an undeterminable answer is
  ``False``, never an error.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .aggregation import AccountAggregator, AccountInfo, BalanceSummary, ProductInfo, ProductStatus
from .customers import Customer, CustomerDirectory
from .savings import AutoTransferConfig, SavingsAccount, SavingsService
from .tokens import decode_to_phone_number, resolve_group_customer_token, try_decode_phone_number
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.integration")


@dataclass
class CustomerInfo:
    """Customer snapshot returned to group services"""
    customer_id: str
    customer_name: str
    phone_number: str
    email: str
    customer_grade: str
    status: str
    join_date: datetime
    total_balance: int
    accounts: List[AccountInfo] = field(default_factory=list)
    products: List[ProductInfo] = field(default_factory=list)
    response_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BankIntegrationService:
    """
    Token-addressed operations exposed to the rest of the financial group
    """

    def __init__(
        self,
        customers: CustomerDirectory,
        aggregator: AccountAggregator,
        savings: SavingsService,
        issuer_suffix: str = "KIMHANA_001",
        supported_product_ids: Iterable[int] = (1,),
        fallback_phone: Optional[str] = None
    ):
        self.customers = customers
        self.aggregator = aggregator
        self.savings = savings
        self.issuer_suffix = issuer_suffix
        self.supported_product_ids = frozenset(supported_product_ids)
        self.fallback_phone = fallback_phone

    def resolve_customer(self, customer_info_token: str) -> Customer:
        """
        Decode a token and look the customer up

        Raises:
            TokenFormatError: token carries no phone number
            CustomerNotFoundError: no customer owns the phone number
        """
        phone = decode_to_phone_number(customer_info_token)
        return self.customers.find_by_phone(phone)

    def get_customer_info(
        self,
        group_customer_token: str,
        info_type: Optional[str] = None,
        requesting_service: Optional[str] = None
    ) -> CustomerInfo:
        """
        Customer snapshot with every account and product holding

        Args:
            group_customer_token: base64 group token as received on the wire
            info_type: Kind of information requested (recorded only)
            requesting_service: Calling group service (recorded only)

        Returns:
            CustomerInfo for the token's customer
        """
        group_token = resolve_group_customer_token(group_customer_token, self.issuer_suffix)
        customer = self.resolve_customer(group_token)

        holdings = self.aggregator.aggregate(customer)
        info = CustomerInfo(
            customer_id=customer.id,
            customer_name=customer.name,
            phone_number=customer.phone_number,
            email=customer.email,
            customer_grade=customer.customer_grade,
            status="ACTIVE" if customer.is_active else "INACTIVE",
            join_date=customer.created_at,
            total_balance=self.aggregator.total_balance(customer),
            accounts=holdings.accounts,
            products=holdings.products
        )

        log_action(logger, "info", "Served customer info",
                   customer_id=customer.id, action="customer_info", resource="customer",
                   extra={"info_type": info_type, "requesting_service": requesting_service,
                          "accounts": len(info.accounts), "products": len(info.products)})
        return info

    def create_savings_account(
        self,
        customer_info_token: str,
        product_id: int,
        preferential_rate: Optional[Decimal] = None,
        application_amount: int = 0,
        auto_transfer_enabled: bool = False,
        transfer_day: Optional[int] = None,
        monthly_transfer_amount: Optional[int] = None,
        withdrawal_account_number: Optional[str] = None,
        withdrawal_bank_name: Optional[str] = None,
        requesting_service: Optional[str] = None
    ) -> SavingsAccount:
        """Open and fund a savings account for the token's customer"""
        phone = decode_to_phone_number(customer_info_token)
        auto_transfer = AutoTransferConfig(
            enabled=bool(auto_transfer_enabled),
            transfer_day=transfer_day,
            monthly_amount=monthly_transfer_amount,
            withdrawal_account_number=withdrawal_account_number or None,
            withdrawal_bank_name=withdrawal_bank_name
        )
        return self.savings.originate(
            customer_phone=phone,
            product_id=product_id,
            preferential_rate=preferential_rate,
            application_amount=application_amount or 0,
            auto_transfer=auto_transfer,
            actor=requesting_service
        )

    def get_product_status(self, customer_info_token: str,
                           requesting_service: Optional[str] = None) -> ProductStatus:
        """Holding counts per category"""
        customer = self.resolve_customer(customer_info_token)
        status = self.aggregator.product_status(customer)
        log_action(logger, "info", "Served product status",
                   customer_id=customer.id, action="product_status", resource="customer",
                   extra={"requesting_service": requesting_service, "total_products": status.total_products})
        return status

    def get_account_balance(self, customer_info_token: str,
                            account_number: Optional[str] = None) -> BalanceSummary:
        """
        Balance over all active demand deposit accounts

        ``account_number`` is accepted for compatibility with callers but does
        not narrow the summary.
        """
        customer = self.resolve_customer(customer_info_token)
        summary = self.aggregator.deposit_balance_summary(customer)
        log_action(logger, "info", "Served account balance",
                   customer_id=customer.id, action="account_balance", resource="demand_deposit_account",
                   extra={"account_number": account_number, "account_count": summary.account_count})
        return summary

    def check_product_ownership(self, group_customer_token: str, product_id: int) -> bool:
        """
        Whether the token's customer holds an active account of the product

        Never raises: a token without a phone number, an unknown customer, an
        unsupported product id or any failure all answer False.
        """
        try:
            phone = try_decode_phone_number(group_customer_token, self.fallback_phone)
            if phone is None:
                return False

            customer = self.customers.find_by_phone_or_none(phone)
            if customer is None:
                logger.warning("Ownership check for unknown customer")
                return False

            if product_id not in self.supported_product_ids:
                logger.warning("Ownership check for unsupported product %s", product_id)
                return False

            has_product = any(
                account.product_id == product_id and account.is_usable
                for account in self.savings.get_customer_savings_accounts(customer.id)
            )
            log_action(logger, "info", f"Ownership of product {product_id}: {has_product}",
                       customer_id=customer.id, action="check_ownership", resource="savings_account")
            return has_product

        except Exception as e:
            logger.error("Ownership check failed: %s", e, exc_info=True)
            return False
