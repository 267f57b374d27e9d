"""
workflow.py — Payment Orchestration for Checkout

This module routes a single checkout intent to exactly one payment provider and
resolves it to a uniform `PaymentResult` or a uniform `PaymentFailure`.

Workflow Overview:
1. Precondition phase (synchronous): resolve the method id and check the
   method-specific selection (bank, UPI id, EMI tenure). Nothing touches the
   network if this fails.
2. Dispatch: exactly one provider integration runs
       razorpay            → hosted checkout (script loaded on every call)
       upi                 → dedicated UPI-id path, or Razorpay with a UPI hint
       phonepe             → backend initiate + redirect to provider page
       paytm               → backend initiate + embedded widget with txn token
       googlepay           → Google Pay payment sheet
       netbanking / emi    → Razorpay with bank / tenure attached
       cod                 → backend COD confirmation
3. Resolution: success yields a PaymentResult; every error is surfaced as a
   PaymentFailure chained to the original error. There is no retry loop.

Order totals shown at checkout are computed here as well (shipping, COD charge,
EMI installments).
"""

import asyncio
import logging
import re
from decimal import ROUND_CEILING, Decimal
from typing import Any, Awaitable, Dict, Optional, Union
from urllib.parse import urlencode

from .clients import StorefrontApi
from .config import GOOGLE_PAY_MERCHANT_ID, PAYTM_MERCHANT_ID, RAZORPAY_KEY_ID, STORE_NAME, UPI_PAYEE_VPA
from .errors import (HttpError, PaymentFailure, PaymentInitializationError, ProviderRejection,
                     ProviderSdkError, StorefrontError, UnsupportedPaymentMethod, ValidationError)
from .models import CheckoutSelection, OrderData, OrderSummary, PaymentMethod, PaymentResult
from .providers import (EmbeddedPaytmCheckout, GooglePayClient, HostGooglePayClient, Navigator, PaytmCheckout,
                        RazorpayCheckout, RecordingNavigator)

log = logging.getLogger(__name__)

SHIPPING_CHARGE = Decimal("50")
COD_CHARGE = Decimal("25")
EMI_TENURES = (3, 6, 9, 12, 18, 24)

UPI_ID_PATTERN = re.compile(r"^[\w.\-]{2,}@[A-Za-z]{2,}$")

# Every PaymentMethod must map to a handler
_HANDLERS = {
    PaymentMethod.RAZORPAY: "_pay_razorpay",
    PaymentMethod.UPI: "_pay_upi",
    PaymentMethod.PHONEPE: "_pay_phonepe",
    PaymentMethod.GOOGLEPAY: "_pay_googlepay",
    PaymentMethod.PAYTM: "_pay_paytm",
    PaymentMethod.NETBANKING: "_pay_netbanking",
    PaymentMethod.COD: "_pay_cod",
    PaymentMethod.EMI: "_pay_emi",
}
if set(_HANDLERS) != set(PaymentMethod):
    raise RuntimeError(f"Unhandled payment methods: {set(PaymentMethod) - set(_HANDLERS)}")


# --- Pure checkout rules ---
def resolve_method(method: Union[str, PaymentMethod]) -> PaymentMethod:
    """
    Maps a method id to a PaymentMethod.

    Raises:
        UnsupportedPaymentMethod: If the id is not one of the known methods.
    """
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(method)
    except ValueError:
        raise UnsupportedPaymentMethod(method) from None


def charged_total(method: Union[str, PaymentMethod], amount) -> Decimal:
    """Amount actually charged: COD carries a fixed surcharge, every other method charges `amount`."""
    amount = Decimal(str(amount))
    if resolve_method(method) == PaymentMethod.COD:
        return amount + COD_CHARGE
    return amount


def order_summary(amount, method: Union[str, PaymentMethod]) -> OrderSummary:
    """
    Itemized totals for the checkout summary. `amount` already includes shipping,
    which is always listed on its own line.
    """
    amount = Decimal(str(amount))
    cod = resolve_method(method) == PaymentMethod.COD
    return OrderSummary(
        subtotal=amount - SHIPPING_CHARGE,
        shipping=SHIPPING_CHARGE,
        codCharges=COD_CHARGE if cod else Decimal("0"),
        total=charged_total(method, amount),
    )


def monthly_installment(amount, tenure_months: int) -> Decimal:
    """Displayed EMI installment, ceil(amount / tenure). Actual billing is up to the provider."""
    if tenure_months not in EMI_TENURES:
        raise ValidationError(f"EMI tenure must be one of {', '.join(map(str, EMI_TENURES))} months",
                              field="emiTenure")
    return (Decimal(str(amount)) / tenure_months).to_integral_value(rounding=ROUND_CEILING)


def check_selection(method: PaymentMethod, selection: CheckoutSelection) -> None:
    """
    Rejects a payment whose method-specific choices are incomplete.

    Raises:
        ValidationError: Missing bank, missing or malformed UPI id, or unknown EMI tenure.
    """
    if method == PaymentMethod.NETBANKING and not (selection.bankCode or "").strip():
        raise ValidationError("Please select your bank", field="bankCode")
    if method == PaymentMethod.UPI and selection.manualUpi:
        upi_id = (selection.upiId or "").strip()
        if not upi_id:
            raise ValidationError("Please enter your UPI ID", field="upiId")
        if not UPI_ID_PATTERN.match(upi_id):
            raise ValidationError("Please enter a valid UPI ID (e.g., name@paytm)", field="upiId")
    if method == PaymentMethod.EMI and selection.emiTenure not in EMI_TENURES:
        raise ValidationError(f"EMI tenure must be one of {', '.join(map(str, EMI_TENURES))} months",
                              field="emiTenure")


def can_submit(method: Union[str, PaymentMethod], selection: Optional[CheckoutSelection] = None) -> bool:
    """Whether the pay action is enabled for the current choices."""
    try:
        check_selection(resolve_method(method), selection or CheckoutSelection())
    except ValidationError:
        return False
    return True


def build_upi_url(order: OrderData, upi_id: str) -> str:
    query = urlencode({
        "pa": upi_id,
        "pn": STORE_NAME,
        "am": str(order.amount),
        "cu": "INR",
        "tn": f"Order {order.orderId}",
    })
    return f"upi://pay?{query}"


def build_razorpay_options(order: OrderData, prefill_method: Optional[str] = None,
                           bank: Optional[str] = None, vpa: Optional[str] = None,
                           notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Razorpay checkout options. The amount is sent in paise."""
    options = {
        "key": RAZORPAY_KEY_ID,
        "amount": order.amount_paise,
        "currency": "INR",
        "name": STORE_NAME,
        "description": "Premium Makhana Purchase",
        "image": "/logo192.png",
        "prefill": {
            "name": order.customerName,
            "email": order.customerEmail,
            "contact": order.customerPhone,
        },
        "notes": {"address": order.shippingAddress, "orderId": order.orderId},
        "theme": {"color": "#ef4444"},
        "method": {"netbanking": True, "card": True, "wallet": True, "upi": True, "paylater": True},
    }
    if order.razorpayOrderId:
        options["order_id"] = order.razorpayOrderId
    if prefill_method:
        options["prefill"]["method"] = prefill_method
    if bank:
        options["prefill"]["bank"] = bank
    if vpa:
        options["prefill"]["vpa"] = vpa
    if notes:
        options["notes"].update(notes)
    return options


def build_google_pay_request(order: OrderData) -> Dict[str, Any]:
    return {
        "apiVersion": 2,
        "apiVersionMinor": 0,
        "allowedPaymentMethods": [
            {
                "type": "CARD",
                "parameters": {
                    "allowedAuthMethods": ["PAN_ONLY", "CRYPTOGRAM_3DS"],
                    "allowedCardNetworks": ["MASTERCARD", "VISA", "RUPAY"],
                },
            },
            {
                "type": "UPI",
                "parameters": {
                    "payeeVpa": UPI_PAYEE_VPA,
                    "payeeName": STORE_NAME,
                    "referenceUrl": "https://pinakamakhana.com",
                },
            },
        ],
        "merchantInfo": {"merchantId": GOOGLE_PAY_MERCHANT_ID, "merchantName": STORE_NAME},
        "transactionInfo": {
            "totalPriceStatus": "FINAL",
            "totalPrice": str(order.amount),
            "currencyCode": "INR",
        },
    }


# --- Orchestrator ---
class PaymentOrchestrator:
    """
    Dispatches one checkout intent to one provider.

    At most one attempt per checkout session is expected to be in flight; the
    orchestrator does not guard against concurrent attempts.
    """
    def __init__(self, api: StorefrontApi, razorpay: RazorpayCheckout,
                 paytm: Optional[PaytmCheckout] = None, googlepay: Optional[GooglePayClient] = None,
                 navigator: Optional[Navigator] = None):
        self.api = api
        self.razorpay = razorpay
        self.paytm = paytm or EmbeddedPaytmCheckout()
        self.googlepay = googlepay or HostGooglePayClient()
        self.navigator = navigator or RecordingNavigator()

    def pay(self, method: Union[str, PaymentMethod], order: OrderData,
            selection: Optional[CheckoutSelection] = None) -> Awaitable[PaymentResult]:
        """
        Validates the intent and returns the awaitable payment attempt.

        Args:
            method: Payment method id, e.g. "razorpay" or PaymentMethod.COD.
            order (OrderData): Order to pay for.
            selection (CheckoutSelection | None): Method-specific choices.

        Returns:
            Awaitable resolving to a PaymentResult.

        Raises:
            UnsupportedPaymentMethod: Immediately, for unknown method ids.
            ValidationError: Immediately, for incomplete method-specific choices.
            PaymentFailure: When awaited, if the dispatched attempt fails.
        """
        method = resolve_method(method)
        selection = selection or CheckoutSelection()
        check_selection(method, selection)
        return self._dispatch(method, order, selection)

    async def _dispatch(self, method: PaymentMethod, order: OrderData,
                        selection: CheckoutSelection) -> PaymentResult:
        log_prefix = f"[Order: {order.orderId}]"
        log.info(f"{log_prefix} Dispatching payment via {method.value} ({order.amount} INR).")
        handler = getattr(self, _HANDLERS[method])

        try:
            result = await handler(order, selection)
        except StorefrontError as e:
            log.error(f"{log_prefix} Payment via {method.value} failed: {e.message}")
            raise PaymentFailure(method.value, e) from e
        except Exception as e:
            log.error(f"{log_prefix} Provider adapter for {method.value} raised {e!r}")
            error = ProviderSdkError(method.value, str(e) or f"{method.value} provider error")
            raise PaymentFailure(method.value, error) from e

        log.info(f"{log_prefix} Payment via {method.value} succeeded (status: {result.status}).")
        return result

    async def verify(self, result: PaymentResult):
        """Asks the backend to verify a provider payment (signature check happens server-side)."""
        return await self.api.verify_payment({
            "method": result.method.value,
            "paymentId": result.paymentId,
            "orderId": result.orderId,
            "signature": result.signature,
        })

    # --- Razorpay family ---
    async def _open_razorpay(self, order: OrderData, method: PaymentMethod, **hints) -> PaymentResult:
        await self.razorpay.ensure_loaded()
        options = build_razorpay_options(order, **hints)

        loop = asyncio.get_running_loop()
        outcome = loop.create_future()

        def settle_success(response):
            if outcome.done():
                return
            try:
                result = PaymentResult(
                    method=method,
                    paymentId=response.get("razorpay_payment_id"),
                    orderId=response.get("razorpay_order_id"),
                    signature=response.get("razorpay_signature"),
                    status="captured",
                )
            except (AttributeError, ValueError):
                outcome.set_exception(ProviderRejection("razorpay", response,
                                                        message="Unexpected Razorpay response"))
                return
            outcome.set_result(result)

        def settle_failure(response):
            if outcome.done():
                return
            error = response.get("error") if isinstance(response, dict) else response
            outcome.set_exception(ProviderRejection("razorpay", error))

        # Provider callbacks may fire from outside the event loop thread
        self.razorpay.open(
            options,
            lambda response: loop.call_soon_threadsafe(settle_success, response),
            lambda response: loop.call_soon_threadsafe(settle_failure, response),
        )
        return await outcome

    async def _pay_razorpay(self, order, selection):
        return await self._open_razorpay(order, PaymentMethod.RAZORPAY)

    async def _pay_upi(self, order, selection):
        if selection.manualUpi and selection.upiId:
            return await self._pay_upi_id(order, selection.upiId.strip())
        return await self._open_razorpay(order, PaymentMethod.UPI, prefill_method="upi")

    async def _pay_upi_id(self, order, upi_id):
        upi_url = build_upi_url(order, upi_id)
        log.info(f"[Order: {order.orderId}] Collecting UPI payment from {upi_id}.")
        return await self._open_razorpay(order, PaymentMethod.UPI, prefill_method="upi", vpa=upi_id,
                                         notes={"upiIntent": upi_url})

    async def _pay_netbanking(self, order, selection):
        return await self._open_razorpay(order, PaymentMethod.NETBANKING, prefill_method="netbanking",
                                         bank=selection.bankCode.strip())

    async def _pay_emi(self, order, selection):
        installment = monthly_installment(order.amount, selection.emiTenure)
        log.info(f"[Order: {order.orderId}] EMI over {selection.emiTenure} months (~{installment} INR/month).")
        return await self._open_razorpay(order, PaymentMethod.EMI, prefill_method="emi",
                                         notes={"emiTenure": str(selection.emiTenure)})

    # --- Server-initiated flows ---
    async def _initiate(self, provider: str, failure: str, call, payload) -> Dict[str, Any]:
        try:
            data = await call(payload)
        except HttpError as e:
            raise PaymentInitializationError(provider, f"{failure}: {e.message}") from e
        if not isinstance(data, dict) or not data.get("success"):
            raise PaymentInitializationError(provider, failure, data)
        return data

    async def _pay_phonepe(self, order, selection):
        data = await self._initiate("phonepe", "PhonePe initialization failed", self.api.initiate_phonepe, {
            "amount": order.amount,
            "orderId": order.orderId,
            "customerDetails": {
                "name": order.customerName,
                "email": order.customerEmail,
                "phone": order.customerPhone,
            },
        })
        payment_url = data.get("paymentUrl")
        if not payment_url:
            raise PaymentInitializationError("phonepe", "PhonePe initialization failed", data)

        self.navigator.redirect(payment_url)
        return PaymentResult(method=PaymentMethod.PHONEPE, orderId=order.orderId,
                             redirectUrl=payment_url, status="redirected")

    async def _pay_paytm(self, order, selection):
        data = await self._initiate("paytm", "Paytm initialization failed", self.api.initiate_paytm, {
            "orderId": order.orderId,
            "amount": order.amount,
            "customerId": order.customerId,
        })
        config = {
            "root": "",
            "flow": "DEFAULT",
            "merchant": {"mid": PAYTM_MERCHANT_ID},
            "data": {
                "orderId": data.get("orderId", order.orderId),
                "token": data.get("token"),
                "tokenType": "TXN_TOKEN",
                "amount": str(order.amount),
            },
        }
        await self.paytm.ensure_loaded()
        await self.paytm.init(config)
        await self.paytm.invoke()
        return PaymentResult(method=PaymentMethod.PAYTM, orderId=config["data"]["orderId"],
                             status="initiated", providerData=config)

    async def _pay_googlepay(self, order, selection):
        await self.googlepay.ensure_loaded()
        request = build_google_pay_request(order)
        try:
            payment_data = await self.googlepay.load_payment_data(request)
        except StorefrontError:
            raise
        except Exception as e:
            raise ProviderRejection("googlepay", str(e), message="Google Pay payment failed") from e
        return PaymentResult(method=PaymentMethod.GOOGLEPAY, orderId=order.orderId,
                             status="authorized", providerData=payment_data)

    async def _pay_cod(self, order, selection):
        payload = order.model_dump()
        payload["amount"] = charged_total(PaymentMethod.COD, order.amount)
        payload["codCharges"] = COD_CHARGE
        data = await self._initiate("cod", "COD order placement failed", self.api.confirm_cod, payload)
        return PaymentResult(method=PaymentMethod.COD, orderId=str(data.get("orderId", order.orderId)),
                             status="confirmed")
