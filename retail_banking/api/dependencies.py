"""
Component wiring and FastAPI dependencies
"""

from typing import Optional

from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..customers import CustomerDirectory
from ..deposits import DemandDepositService
from ..savings import SavingsProductCatalog, SavingsService
from ..loans import LoanManager
from ..investments import InvestmentManager
from ..aggregation import AccountAggregator
from ..integration import BankIntegrationService
from ..config import BankConfig, get_config


class BankingSystem:
    """Retail banking backend with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[BankConfig] = None):
        self.config = config or get_config()

        # Initialize storage
        self.storage = storage or create_storage(self.config.database_url)

        # Initialize core components
        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.customer_directory = CustomerDirectory(self.storage, self.audit_trail)
        self.deposit_service = DemandDepositService(
            self.storage, self.audit_trail,
            bank_code=self.config.demand_deposit_bank_code,
            max_attempts=self.config.account_number_max_attempts
        )
        self.product_catalog = SavingsProductCatalog(self.storage, self.audit_trail)
        self.savings_service = SavingsService(
            self.storage, self.audit_trail,
            customers=self.customer_directory,
            catalog=self.product_catalog,
            deposits=self.deposit_service,
            bank_code=self.config.bank_code,
            account_name=self.config.savings_account_name,
            max_attempts=self.config.account_number_max_attempts
        )
        self.loan_manager = LoanManager(self.storage, self.audit_trail)
        self.investment_manager = InvestmentManager(self.storage, self.audit_trail)

        self.aggregator = AccountAggregator(
            self.deposit_service, self.savings_service, self.product_catalog,
            self.loan_manager, self.investment_manager
        )
        self.integration_service = BankIntegrationService(
            self.customer_directory, self.aggregator, self.savings_service,
            issuer_suffix=self.config.group_token_issuer_suffix,
            supported_product_ids=self.config.ownership_supported_product_ids,
            fallback_phone=self.config.ownership_fallback_phone
        )

    def close(self) -> None:
        self.storage.close()


# Global banking system instance, created on first use
_banking_system: Optional[BankingSystem] = None


# Dependency to get banking system
def get_banking_system() -> BankingSystem:
    global _banking_system
    if _banking_system is None:
        _banking_system = BankingSystem()
    return _banking_system
