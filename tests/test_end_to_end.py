"""
Flows run against the in-process mock backend (FastAPI app over httpx.ASGITransport).
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront_client.coupons import CouponAdmin, CouponEvaluator
from storefront_client.errors import HttpError, PaymentFailure, PaymentInitializationError, ValidationError
from storefront_client.models import OrderData
from storefront_client.smoke import run_full_flow
from storefront_client.users import OrderAdmin, UserDirectory
from storefront_client.workflow import PaymentOrchestrator

from .conftest import FakeRazorpay


async def test_register_login_and_cart(store_api):
    report = await run_full_flow(store_api, email="user123@test.com", product_id=1, quantity=2)

    assert report.registrationToken
    assert report.loginToken
    assert report.role == "ROLE_USER"
    assert len(report.cartItems) == 1
    assert report.cartItems[0]["product"]["id"] == 1
    assert report.cartItems[0]["quantity"] == 2


async def test_duplicate_registration_fails(store_api):
    await run_full_flow(store_api, email="user123@test.com")

    with pytest.raises(HttpError, match="Email already registered"):
        await run_full_flow(store_api, email="user123@test.com")


async def test_cart_requires_authentication(store_api):
    with pytest.raises(HttpError) as excinfo:
        await store_api.get_cart()
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "Authentication required"


async def test_cart_mutations_and_order_placement(store_api):
    await store_api.register({"name": "Asha", "email": "asha@example.com", "password": "pw"})
    await store_api.add_to_cart(2, 1)
    await store_api.add_to_cart(3, 2)
    await store_api.update_cart_item(3, 1)
    await store_api.remove_from_cart(2)

    cart = await store_api.get_cart()
    assert [(line["product"]["id"], line["quantity"]) for line in cart] == [(3, 1)]

    message = await store_api.place_order()
    assert message.startswith("Order placed successfully")
    assert await store_api.get_cart() == []

    history = await store_api.get_order_history()
    assert len(history) == 1
    assert history[0]["totalAmount"] == 229.0


async def test_summer_coupon_against_backend(store_api):
    evaluator = CouponEvaluator(store_api)

    applied = await evaluator.apply("summer2023", Decimal("1000"))

    assert applied.discount == Decimal("100")
    assert applied.total == Decimal("900")


async def test_coupon_rules_enforced_by_backend(store_api):
    evaluator = CouponEvaluator(store_api)

    with pytest.raises(ValidationError, match="Coupon is not applicable"):
        await evaluator.apply("SUMMER2023", Decimal("100"))
    assert not (await evaluator.validate("WINTER2022", Decimal("1000"))).valid
    assert not (await evaluator.validate("WELCOME50", Decimal("1000"))).valid

    applied = await evaluator.apply("WELCOME50", Decimal("1000"), first_time_user=True)
    assert applied.total == Decimal("950")


async def test_coupon_admin_lifecycle(admin_api):
    admin = CouponAdmin(admin_api)
    now = datetime.now(timezone.utc)

    created = await admin.create({
        "code": "monsoon10",
        "description": "Monsoon offer",
        "discountType": "PERCENTAGE",
        "discountValue": "10",
        "startDate": (now - timedelta(days=1)).date().isoformat(),
        "endDate": (now + timedelta(days=30)).date().isoformat(),
    })
    assert created.code == "MONSOON10"
    assert (await admin.get_by_code("monsoon10")).id == created.id

    toggled = await admin.toggle_active(created)
    assert toggled.active is False
    assert [c.code for c in await admin.search(status="inactive")] == ["MONSOON10"]
    assert [c.code for c in await admin.search(status="expired")] == ["WINTER2022"]

    with pytest.raises(HttpError, match="already exists"):
        await admin.create({**created.model_dump(mode="json"), "discountValue": "5"})

    await admin.delete(created.id)
    with pytest.raises(HttpError) as excinfo:
        await admin.get(created.id)
    assert excinfo.value.status_code == 404


async def test_coupon_admin_requires_admin_role(store_api):
    await store_api.register({"name": "Asha", "email": "asha@example.com", "password": "pw"})

    with pytest.raises(HttpError) as excinfo:
        await CouponAdmin(store_api).delete(1)
    assert excinfo.value.status_code == 403
    assert len(await CouponAdmin(store_api).list_all()) == 4


async def test_user_directory_against_backend(admin_api, store_api):
    await run_full_flow(store_api, email="buyer@test.com")
    await store_api.place_order()

    directory = UserDirectory(admin_api)
    users = await directory.get_all_users()

    assert directory.strategy == "with-stats"
    buyer = next(u for u in users if u["email"] == "buyer@test.com")
    assert buyer["totalOrders"] == 1
    assert buyer["totalSpent"] == 398.0

    await directory.promote(buyer["id"])
    assert (await directory.get_user(buyer["id"]))["role"] == "ROLE_ADMIN"

    orders = OrderAdmin(admin_api)
    order_id = (await orders.list_all())[0]["id"]
    assert (await orders.update_status(order_id, "shipped"))["status"] == "SHIPPED"


@pytest.fixture
async def shopper(store_api):
    await store_api.register({"name": "Asha Verma", "email": "asha@example.com", "password": "pw"})
    return store_api


def order_for(order_id, amount="1049.50"):
    return OrderData(amount=Decimal(amount), orderId=order_id, customerName="Asha Verma",
                     customerEmail="asha@example.com", customerPhone="9876543210")


async def test_cod_order_is_confirmed_with_surcharge(shopper):
    orchestrator = PaymentOrchestrator(shopper, FakeRazorpay())
    await shopper.add_to_cart(1, 1)

    result = await orchestrator.pay("cod", order_for("ORD-1"))

    history = await shopper.get_order_history()
    assert result.status == "confirmed"
    assert result.orderId == str(history[0]["id"])
    assert history[0]["status"] == "CONFIRMED"
    assert history[0]["totalAmount"] == 1074.5


async def test_phonepe_initiation_failure_from_backend(shopper):
    orchestrator = PaymentOrchestrator(shopper, FakeRazorpay())

    with pytest.raises(PaymentFailure, match="PhonePe initialization failed") as excinfo:
        await orchestrator.pay("phonepe", order_for("FAIL-7"))

    assert isinstance(excinfo.value.provider_error, PaymentInitializationError)
    assert orchestrator.navigator.redirects == []


async def test_paytm_without_host_widget(shopper):
    orchestrator = PaymentOrchestrator(shopper, FakeRazorpay())

    with pytest.raises(PaymentFailure, match="Paytm checkout is not available"):
        await orchestrator.pay("paytm", order_for("ORD-2"))


async def test_razorpay_payment_is_verified(shopper):
    orchestrator = PaymentOrchestrator(shopper, FakeRazorpay())

    result = await orchestrator.pay("razorpay", order_for("ORD-3"))
    verification = await orchestrator.verify(result)

    assert verification["verified"] is True
