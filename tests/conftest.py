import json
from decimal import Decimal

import httpx
import pytest

from mock_services.mock_store_backend import app, state
from storefront_client.clients import ApiClient, Session, StorefrontApi
from storefront_client.errors import ProviderSdkError
from storefront_client.models import OrderData
from storefront_client.providers import RecordingNavigator
from storefront_client.workflow import PaymentOrchestrator

BASE_URL = "http://testserver/api"


class RecordingBackend:
    """httpx.MockTransport handler that answers from a route table and records requests."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})
        answer = self.routes[key]
        if callable(answer):
            return answer(request)
        status, body = answer
        return httpx.Response(status, json=body)

    def calls_to(self, path):
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def body(request):
        return json.loads(request.content)


def make_api(backend, token=None):
    client = ApiClient(base_url=BASE_URL, session=Session(token), transport=httpx.MockTransport(backend))
    return StorefrontApi(client)


class FakeRazorpay:
    def __init__(self, succeed=True, load_fails=False):
        self.succeed = succeed
        self.load_fails = load_fails
        self.loads = 0
        self.opened = []

    async def ensure_loaded(self):
        self.loads += 1
        if self.load_fails:
            raise ProviderSdkError("razorpay", "Razorpay SDK failed to load")

    def open(self, options, on_success, on_failure):
        self.opened.append(options)
        if self.succeed:
            on_success({
                "razorpay_payment_id": "pay_29QQoUBi66xm2f",
                "razorpay_order_id": options.get("order_id", "order_9A33XWu170gUtm"),
                "razorpay_signature": "9ef4dffbfd84f1318f6739a3ce19f9d85851857ae648f114332d8401e0949a3d",
            })
        else:
            on_failure({"error": {"code": "BAD_REQUEST_ERROR", "description": "Payment cancelled by user"}})


class FakePaytm:
    def __init__(self, available=True):
        self.available = available
        self.configs = []
        self.invocations = 0

    async def ensure_loaded(self):
        if not self.available:
            raise ProviderSdkError("paytm", "Paytm checkout is not available")

    async def init(self, config):
        self.configs.append(config)

    async def invoke(self):
        self.invocations += 1


class FakeGooglePay:
    def __init__(self, available=True, error=None):
        self.available = available
        self.error = error
        self.requests = []

    async def ensure_loaded(self):
        if not self.available:
            raise ProviderSdkError("googlepay", "Google Pay not available")

    async def load_payment_data(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return {"paymentMethodData": {"type": "UPI", "tokenizationData": {"token": "gpay-token"}}}


PAYMENT_ROUTES = {
    ("POST", "/api/payment/phonepe/initiate"): (200, {"success": True,
                                                      "paymentUrl": "https://mercury-uat.phonepe.com/transact/ORD-1001"}),
    ("POST", "/api/payment/paytm/initiate"): (200, {"success": True, "orderId": "ORD-1001", "token": "txn_abc"}),
    ("POST", "/api/orders/cod"): (200, {"success": True, "orderId": 42}),
    ("POST", "/api/payment/verify"): (200, {"verified": True}),
}


@pytest.fixture
def order():
    return OrderData(
        amount=Decimal("1049.50"),
        orderId="ORD-1001",
        customerName="Asha Verma",
        customerEmail="asha@example.com",
        customerPhone="9876543210",
        shippingAddress="12 MG Road, Bengaluru",
    )


@pytest.fixture
def payment_backend():
    return RecordingBackend(dict(PAYMENT_ROUTES))


@pytest.fixture
def providers():
    return {
        "razorpay": FakeRazorpay(),
        "paytm": FakePaytm(),
        "googlepay": FakeGooglePay(),
        "navigator": RecordingNavigator(),
    }


@pytest.fixture
async def orchestrator(payment_backend, providers):
    api = make_api(payment_backend, token="tok_test")
    yield PaymentOrchestrator(api, **providers)
    await api.client.aclose()


@pytest.fixture
def store():
    state.reset()
    return state


@pytest.fixture
async def store_api(store):
    client = ApiClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=app))
    yield StorefrontApi(client)
    await client.aclose()


@pytest.fixture
async def admin_api(store):
    client = ApiClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=app))
    api = StorefrontApi(client)
    await api.login({"email": "admin@pinaka.com", "password": "admin123"})
    yield api
    await client.aclose()
