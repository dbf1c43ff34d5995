"""
Group integration endpoints
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from .dependencies import BankingSystem, get_banking_system
from .schemas import (
    AccountBalanceRequest,
    ApiResponse,
    CreateSavingsAccountRequest,
    CustomerInfoRequest,
    ProductOwnershipRequest,
    ProductStatusRequest,
    balance_summary_payload,
    customer_info_payload,
    product_status_payload,
    savings_account_payload,
)
from ..exceptions import (
    AccountNotFoundError,
    AccountNumberCollisionError,
    CustomerNotFoundError,
    DuplicateCustomerError,
    InsufficientFundsError,
    InvalidAmountError,
    NonZeroBalanceCloseError,
    ProductNotFoundError,
    TokenFormatError,
)
from ..logging_config import get_logger


router = APIRouter()
logger = get_logger("retail_banking.api")


BAD_REQUEST_ERRORS = (
    TokenFormatError,
    CustomerNotFoundError,
    ProductNotFoundError,
    AccountNotFoundError,
    InvalidAmountError,
)

CONFLICT_ERRORS = (
    AccountNumberCollisionError,
    InsufficientFundsError,
    NonZeroBalanceCloseError,
    DuplicateCustomerError,
)


def status_code_for(error: Exception) -> int:
    """HTTP status for a failure raised by the service layer"""
    if isinstance(error, BAD_REQUEST_ERRORS):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, CONFLICT_ERRORS):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(prefix: str, error: Exception) -> JSONResponse:
    """Envelope for a failed request; message is ``<prefix>: <detail>``"""
    status_code = status_code_for(error)
    if status_code >= 500:
        logger.error("%s: %s", prefix, error, exc_info=error)
    else:
        logger.warning("%s: %s", prefix, error)
    body = ApiResponse.error(f"{prefix}: {error}")
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.post("/customer-info")
def get_customer_info(
    request: CustomerInfoRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Customer snapshot for a group customer token"""
    try:
        info = system.integration_service.get_customer_info(
            request.group_customer_token,
            info_type=request.info_type,
            requesting_service=request.requesting_service
        )
        return ApiResponse.ok("Customer info retrieved", customer_info_payload(info))

    except Exception as e:
        return error_response("Failed to retrieve customer info", e)


@router.post("/savings-accounts")
def create_savings_account(
    request: CreateSavingsAccountRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Open a savings account, funded from the withdrawal account"""
    try:
        account = system.integration_service.create_savings_account(
            request.customer_info_token,
            product_id=request.product_id,
            preferential_rate=request.preferential_rate,
            application_amount=request.application_amount or 0,
            auto_transfer_enabled=bool(request.auto_transfer_enabled),
            transfer_day=request.transfer_day,
            monthly_transfer_amount=request.monthly_transfer_amount,
            withdrawal_account_number=request.withdrawal_account_number,
            withdrawal_bank_name=request.withdrawal_bank_name,
            requesting_service=request.requesting_service
        )
        return ApiResponse.ok("Savings account created", savings_account_payload(account))

    except Exception as e:
        return error_response("Failed to create savings account", e)


@router.post("/product-status")
def get_product_status(
    request: ProductStatusRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Holding counts per product category"""
    try:
        product_status = system.integration_service.get_product_status(
            request.customer_info_token,
            requesting_service=request.requesting_service
        )
        return ApiResponse.ok("Product status retrieved", product_status_payload(product_status))

    except Exception as e:
        return error_response("Failed to retrieve product status", e)


@router.post("/account-balance")
def get_account_balance(
    request: AccountBalanceRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Demand deposit balance summary"""
    try:
        summary = system.integration_service.get_account_balance(
            request.customer_info_token,
            account_number=request.account_number
        )
        return ApiResponse.ok("Account balance retrieved", balance_summary_payload(summary))

    except Exception as e:
        return error_response("Failed to retrieve account balance", e)


@router.post("/check-product-ownership")
def check_product_ownership(
    request: ProductOwnershipRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Whether the customer holds an active account of the product"""
    if request.product_id is None:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST,
                            content=ApiResponse.error("productId is required").model_dump())

    token = request.group_customer_token
    if token is None or not token.strip():
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST,
                            content=ApiResponse.error("groupCustomerToken is required").model_dump())

    try:
        has_product = system.integration_service.check_product_ownership(token, request.product_id)
        return ApiResponse.ok("Product ownership checked", {
            "hasProduct": has_product,
            "productId": request.product_id,
            "groupCustomerToken": token
        })

    except Exception as e:
        return error_response("Failed to check product ownership", e)
