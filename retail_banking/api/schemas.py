"""
Pydantic schemas for API requests and responses

Group services speak camelCase JSON; fields are declared snake_case with
camelCase aliases and accept either spelling.
"""

from decimal import Decimal
from datetime import date, datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..aggregation import AccountInfo, BalanceSummary, ProductInfo, ProductStatus
from ..integration import CustomerInfo
from ..savings import SavingsAccount


class IntegrationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CustomerInfoRequest(IntegrationRequest):
    group_customer_token: Optional[str] = Field(None, alias="groupCustomerToken")
    info_type: Optional[str] = Field(None, alias="infoType")
    requesting_service: Optional[str] = Field(None, alias="requestingService")
    consent_token: Optional[str] = Field(None, alias="consentToken")


class CreateSavingsAccountRequest(IntegrationRequest):
    customer_info_token: Optional[str] = Field(None, alias="customerInfoToken")
    product_id: int = Field(..., alias="productId")
    preferential_rate: Optional[Decimal] = Field(None, alias="preferentialRate")
    application_amount: Optional[int] = Field(0, alias="applicationAmount")
    auto_transfer_enabled: Optional[bool] = Field(False, alias="autoTransferEnabled")
    transfer_day: Optional[int] = Field(None, alias="transferDay", ge=1, le=31)
    monthly_transfer_amount: Optional[int] = Field(None, alias="monthlyTransferAmount", ge=0)
    withdrawal_account_number: Optional[str] = Field(None, alias="withdrawalAccountNumber")
    withdrawal_bank_name: Optional[str] = Field(None, alias="withdrawalBankName")
    requesting_service: Optional[str] = Field(None, alias="requestingService")


class ProductStatusRequest(IntegrationRequest):
    customer_info_token: Optional[str] = Field(None, alias="customerInfoToken")
    requesting_service: Optional[str] = Field(None, alias="requestingService")


class AccountBalanceRequest(IntegrationRequest):
    customer_info_token: Optional[str] = Field(None, alias="customerInfoToken")
    account_number: Optional[str] = Field(None, alias="accountNumber")


class ProductOwnershipRequest(IntegrationRequest):
    # Both optional so missing values get the envelope 400, not a 422
    product_id: Optional[int] = Field(None, alias="productId")
    group_customer_token: Optional[str] = Field(None, alias="groupCustomerToken")


class ApiResponse(BaseModel):
    """Uniform response envelope"""
    success: bool
    message: str
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> 'ApiResponse':
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str) -> 'ApiResponse':
        return cls(success=False, message=message, data=None)


def _rate(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _iso(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def account_info_payload(account: AccountInfo) -> Dict[str, Any]:
    return {
        "accountNumber": account.account_number,
        "accountType": account.account_type,
        "accountName": account.account_name,
        "balance": account.balance,
        "openDate": _iso(account.open_date),
        "status": account.status
    }


def product_info_payload(product: ProductInfo) -> Dict[str, Any]:
    return {
        "productId": product.product_id,
        "productName": product.product_name,
        "productType": product.product_type,
        "productCode": product.product_code,
        "amount": product.amount,
        "remainingAmount": product.remaining_amount,
        "interestRate": _rate(product.interest_rate),
        "baseRate": _rate(product.base_rate),
        "preferentialRate": _rate(product.preferential_rate),
        "monthlyPayment": product.monthly_payment,
        "startDate": _iso(product.start_date),
        "maturityDate": _iso(product.maturity_date),
        "subscriptionDate": _iso(product.subscription_date),
        "status": product.status
    }


def customer_info_payload(info: CustomerInfo) -> Dict[str, Any]:
    return {
        "customerId": info.customer_id,
        "customerName": info.customer_name,
        "phoneNumber": info.phone_number,
        "email": info.email,
        "customerGrade": info.customer_grade,
        "status": info.status,
        "joinDate": _iso(info.join_date),
        "totalBalance": info.total_balance,
        "accounts": [account_info_payload(a) for a in info.accounts],
        "products": [product_info_payload(p) for p in info.products],
        "responseTime": _iso(info.response_time)
    }


def savings_account_payload(account: SavingsAccount) -> Dict[str, Any]:
    return {
        "accountId": account.id,
        "accountNumber": account.account_number,
        "accountName": account.account_name,
        "customerId": account.customer_id,
        "productId": account.product_id,
        "balance": account.balance,
        "baseRate": _rate(account.base_rate),
        "preferentialRate": _rate(account.preferential_rate),
        "finalRate": _rate(account.final_rate),
        "startDate": _iso(account.start_date),
        "maturityDate": _iso(account.maturity_date),
        "status": account.status.value,
        "autoTransferEnabled": account.auto_transfer.enabled,
        "transferDay": account.auto_transfer.transfer_day,
        "monthlyTransferAmount": account.auto_transfer.monthly_amount,
        "withdrawalAccountNumber": account.auto_transfer.withdrawal_account_number,
        "withdrawalBankName": account.auto_transfer.withdrawal_bank_name
    }


def product_status_payload(status: ProductStatus) -> Dict[str, Any]:
    return {
        "savingsCount": status.savings_count,
        "loanCount": status.loan_count,
        "investmentCount": status.investment_count,
        "depositCount": status.deposit_count,
        "totalProducts": status.total_products
    }


def balance_summary_payload(summary: BalanceSummary) -> Dict[str, Any]:
    return {
        "totalBalance": summary.total_balance,
        "accountCount": summary.account_count
    }
