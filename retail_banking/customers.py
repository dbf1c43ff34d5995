"""
Customer Directory Module

Customer profiles keyed by a normalized phone number. The phone number is the
identity that group customer tokens carry, so it is normalized (dashes and
whitespace stripped) before every save and every lookup, and is unique.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
import uuid
import re

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .exceptions import CustomerNotFoundError, DuplicateCustomerError
from .tokens import normalize_phone
from .logging_config import get_logger, log_action


logger = get_logger("retail_banking.customers")


@dataclass
class Customer(StorageRecord):
    """
    Customer profile
    """
    username: str
    name: str
    email: str
    phone_number: str
    birth_date: Optional[date] = None
    address: Optional[str] = None
    customer_grade: str = "GENERAL"
    is_active: bool = True

    def __post_init__(self):
        if not self.username or not self.name:
            raise ValueError("Customer username and name are required")

        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, self.email):
            raise ValueError("Invalid email format")

        self.phone_number = normalize_phone(self.phone_number)


class CustomerDirectory:
    """
    Registers customers and resolves them by id or phone number
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "customers"

    def register_customer(
        self,
        username: str,
        name: str,
        email: str,
        phone_number: str,
        birth_date: Optional[date] = None,
        address: Optional[str] = None,
        customer_grade: str = "GENERAL"
    ) -> Customer:
        """
        Register a new customer

        Args:
            username: Login name of the customer
            name: Display name
            email: Email address
            phone_number: Phone number, dashed or digits only
            birth_date: Optional date of birth
            address: Optional postal address
            customer_grade: Service grade shown to group services

        Returns:
            Created Customer object

        Raises:
            DuplicateCustomerError: phone number already registered
        """
        now = datetime.now(timezone.utc)
        customer = Customer(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            username=username,
            name=name,
            email=email,
            phone_number=phone_number,
            birth_date=birth_date,
            address=address,
            customer_grade=customer_grade
        )

        with self.storage.atomic():
            if self.find_by_phone_or_none(customer.phone_number):
                raise DuplicateCustomerError(
                    f"Phone number {customer.phone_number} is already registered"
                )

            self._save_customer(customer)

            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_REGISTERED,
                entity_type="customer",
                entity_id=customer.id,
                metadata={
                    "username": username,
                    "customer_grade": customer_grade
                }
            )

        log_action(logger, "info", f"Registered customer {customer.id}",
                   customer_id=customer.id, action="register", resource="customer")
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        customer_dict = self.storage.load(self.table_name, customer_id)
        if customer_dict:
            return self._customer_from_dict(customer_dict)
        return None

    def find_by_phone(self, phone_number: str) -> Customer:
        """
        Resolve a customer by phone number

        Raises:
            TokenFormatError: phone number is not digits after normalization
            CustomerNotFoundError: no customer owns the phone number
        """
        customer = self.find_by_phone_or_none(phone_number)
        if customer is None:
            raise CustomerNotFoundError(f"No customer with phone number {normalize_phone(phone_number)}")
        return customer

    def find_by_phone_or_none(self, phone_number: str) -> Optional[Customer]:
        """Resolve a customer by phone number, None on a miss"""
        phone = normalize_phone(phone_number)
        customers = self.storage.find(self.table_name, {"phone_number": phone})
        if customers:
            return self._customer_from_dict(customers[0])
        return None

    def list_customers(self, active_only: bool = True) -> List[Customer]:
        """List registered customers"""
        customers = [self._customer_from_dict(data) for data in self.storage.load_all(self.table_name)]
        if active_only:
            customers = [c for c in customers if c.is_active]
        return customers

    def update_customer_info(self, customer_id: str, name: Optional[str] = None,
                             address: Optional[str] = None) -> Customer:
        """Update display name and address"""
        with self.storage.atomic():
            customer = self._require_customer(customer_id)
            if name is not None:
                customer.name = name
            if address is not None:
                customer.address = address
            customer.updated_at = datetime.now(timezone.utc)
            self._save_customer(customer)
        return customer

    def deactivate_customer(self, customer_id: str) -> Customer:
        """Deactivate a customer; accounts are left untouched"""
        with self.storage.atomic():
            customer = self._require_customer(customer_id)
            customer.is_active = False
            customer.updated_at = datetime.now(timezone.utc)
            self._save_customer(customer)

        log_action(logger, "info", f"Deactivated customer {customer_id}",
                   customer_id=customer_id, action="deactivate", resource="customer")
        return customer

    def _require_customer(self, customer_id: str) -> Customer:
        customer = self.get_customer(customer_id)
        if not customer:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        return customer

    def _save_customer(self, customer: Customer) -> None:
        """Save customer to storage"""
        self.storage.save(self.table_name, customer.id, self._customer_to_dict(customer))

    def _customer_to_dict(self, customer: Customer) -> Dict:
        """Convert Customer to dictionary for storage"""
        return customer.to_dict()

    def _customer_from_dict(self, data: Dict) -> Customer:
        """Convert dictionary to Customer"""
        birth_date = None
        if data.get('birth_date'):
            birth_date = date.fromisoformat(data['birth_date'])

        return Customer(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            username=data['username'],
            name=data['name'],
            email=data['email'],
            phone_number=data['phone_number'],
            birth_date=birth_date,
            address=data.get('address'),
            customer_grade=data.get('customer_grade', "GENERAL"),
            is_active=data.get('is_active', True)
        )
