"""
Integration tests for the group integration API
Tests every endpoint end to end using FastAPI TestClient
"""

import base64
import pytest
from fastapi.testclient import TestClient

from retail_banking.api import create_app
from retail_banking.api.dependencies import get_banking_system
from retail_banking.tokens import encode_group_token


def b64(text):
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


GROUP_TOKEN = encode_group_token("010-1234-5678", "KIMHANA_001")
CUSTOMER_INFO_TOKEN = b64("CI_01012345678_HANA")


@pytest.fixture
def client(system):
    """Test client wired to the in-memory banking system"""
    app = create_app()
    app.dependency_overrides[get_banking_system] = lambda: system
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def assert_envelope(response, status_code, success):
    assert response.status_code == status_code
    body = response.json()
    assert set(body) == {"success", "message", "data"}
    assert body["success"] is success
    return body


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "healthy"
        assert data["service"] == "retail_banking_api"


class TestCustomerInfoEndpoint:
    """POST /api/integration/customer-info"""

    def test_snapshot(self, client, customer, checking):
        r = client.post("/api/integration/customer-info", json={
            "groupCustomerToken": GROUP_TOKEN,
            "infoType": "FULL",
            "requestingService": "HANA_CARD"
        })
        body = assert_envelope(r, 200, True)
        data = body["data"]

        assert body["message"] == "Customer info retrieved"
        assert data["customerId"] == customer.id
        assert data["customerName"] == "Kim Hana"
        assert data["customerGrade"] == "GENERAL"
        assert data["status"] == "ACTIVE"
        assert data["totalBalance"] == 0
        assert data["accounts"] == [{
            "accountNumber": checking.account_number,
            "accountType": "DEMAND_DEPOSIT",
            "accountName": "Everyday Checking",
            "balance": 2_000_000,
            "openDate": checking.open_date.isoformat(),
            "status": "ACTIVE"
        }]
        assert data["products"] == []
        assert data["joinDate"] is not None

    def test_malformed_token(self, client, customer):
        r = client.post("/api/integration/customer-info", json={"groupCustomerToken": b64("hello")})
        body = assert_envelope(r, 400, False)
        assert body["message"].startswith("Failed to retrieve customer info: ")
        assert body["data"] is None

    def test_missing_token(self, client):
        r = client.post("/api/integration/customer-info", json={})
        assert_envelope(r, 400, False)

    def test_unknown_customer(self, client):
        r = client.post("/api/integration/customer-info", json={"groupCustomerToken": b64("010-9999-9999")})
        assert_envelope(r, 400, False)


class TestSavingsAccountEndpoint:
    """POST /api/integration/savings-accounts"""

    def test_create_funded_account(self, client, system, customer, checking, green_product):
        r = client.post("/api/integration/savings-accounts", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "productId": 1,
            "preferentialRate": 0.5,
            "applicationAmount": 1_000_000,
            "autoTransferEnabled": True,
            "transferDay": 25,
            "monthlyTransferAmount": 100_000,
            "withdrawalAccountNumber": checking.account_number,
            "withdrawalBankName": "Hana Bank",
            "requestingService": "HANA_CARD"
        })
        body = assert_envelope(r, 200, True)
        data = body["data"]

        assert body["message"] == "Savings account created"
        assert data["balance"] == 1_000_000
        assert data["baseRate"] == pytest.approx(1.8)
        assert data["finalRate"] == pytest.approx(2.3)
        assert data["productId"] == 1
        assert data["accountName"] == "Hana Green World Savings"
        assert data["autoTransferEnabled"] is True
        assert data["transferDay"] == 25
        assert data["withdrawalAccountNumber"] == checking.account_number
        assert data["accountNumber"].startswith("506-")
        assert system.deposit_service.get_account_by_number(checking.account_number).balance == 1_000_000

    def test_insufficient_funds_is_conflict(self, client, system, customer, checking, green_product):
        r = client.post("/api/integration/savings-accounts", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "productId": 1,
            "applicationAmount": 3_000_000,
            "withdrawalAccountNumber": checking.account_number
        })
        body = assert_envelope(r, 409, False)
        assert body["message"].startswith("Failed to create savings account: ")
        assert system.savings_service.get_customer_savings_accounts(customer.id) == []
        assert system.deposit_service.get_account_by_number(checking.account_number).balance == 2_000_000

    def test_unknown_product(self, client, customer):
        r = client.post("/api/integration/savings-accounts", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "productId": 99
        })
        assert_envelope(r, 400, False)

    def test_funding_without_source(self, client, customer, green_product):
        r = client.post("/api/integration/savings-accounts", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "productId": 1,
            "applicationAmount": 10_000
        })
        assert_envelope(r, 400, False)

    def test_missing_product_id(self, client, customer):
        r = client.post("/api/integration/savings-accounts", json={"customerInfoToken": CUSTOMER_INFO_TOKEN})
        body = assert_envelope(r, 400, False)
        assert body["message"].startswith("Invalid request: ")
        assert "productId" in body["message"]

    def test_transfer_day_out_of_range(self, client, customer, green_product):
        r = client.post("/api/integration/savings-accounts", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "productId": 1,
            "transferDay": 32
        })
        assert_envelope(r, 400, False)


class TestStatusEndpoints:
    """POST /api/integration/product-status and /account-balance"""

    def test_product_status(self, client, system, customer, checking, green_product):
        system.savings_service.originate(customer.phone_number, 1)

        r = client.post("/api/integration/product-status", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "requestingService": "HANA_CARD"
        })
        body = assert_envelope(r, 200, True)
        assert body["message"] == "Product status retrieved"
        assert body["data"] == {
            "savingsCount": 1,
            "loanCount": 0,
            "investmentCount": 0,
            "depositCount": 1,
            "totalProducts": 2
        }

    def test_unexpected_failure_is_server_error(self, client, system, customer, monkeypatch):
        def broken(token, requesting_service=None):
            raise RuntimeError("storage unavailable")

        monkeypatch.setattr(system.integration_service, "get_product_status", broken)

        r = client.post("/api/integration/product-status", json={"customerInfoToken": CUSTOMER_INFO_TOKEN})
        body = assert_envelope(r, 500, False)
        assert body["message"] == "Failed to retrieve product status: storage unavailable"

    def test_account_balance(self, client, customer, checking):
        r = client.post("/api/integration/account-balance", json={
            "customerInfoToken": CUSTOMER_INFO_TOKEN,
            "accountNumber": "ignored"
        })
        body = assert_envelope(r, 200, True)
        assert body["message"] == "Account balance retrieved"
        assert body["data"] == {"totalBalance": 2_000_000, "accountCount": 1}

    def test_account_balance_unknown_customer(self, client):
        r = client.post("/api/integration/account-balance", json={"customerInfoToken": b64("CI_01000000000_X")})
        body = assert_envelope(r, 400, False)
        assert body["message"].startswith("Failed to retrieve account balance: ")


class TestProductOwnershipEndpoint:
    """POST /api/integration/check-product-ownership"""

    def test_holder(self, client, system, customer, green_product):
        system.savings_service.originate(customer.phone_number, 1)

        r = client.post("/api/integration/check-product-ownership", json={
            "groupCustomerToken": GROUP_TOKEN,
            "productId": 1
        })
        body = assert_envelope(r, 200, True)
        assert body["message"] == "Product ownership checked"
        assert body["data"] == {"hasProduct": True, "productId": 1, "groupCustomerToken": GROUP_TOKEN}

    def test_malformed_token_answers_false(self, client, customer):
        r = client.post("/api/integration/check-product-ownership", json={
            "groupCustomerToken": "garbage",
            "productId": 1
        })
        body = assert_envelope(r, 200, True)
        assert body["data"]["hasProduct"] is False

    def test_missing_product_id(self, client):
        r = client.post("/api/integration/check-product-ownership", json={"groupCustomerToken": GROUP_TOKEN})
        body = assert_envelope(r, 400, False)
        assert body["message"] == "productId is required"

    @pytest.mark.parametrize("payload", [{"productId": 1}, {"productId": 1, "groupCustomerToken": "  "}])
    def test_missing_token(self, client, payload):
        r = client.post("/api/integration/check-product-ownership", json=payload)
        body = assert_envelope(r, 400, False)
        assert body["message"] == "groupCustomerToken is required"
