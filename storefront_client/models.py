"""
models.py — Data Models for Checkout, Payments and Coupons

Pydantic models for every payload the client exchanges with the storefront
backend and the payment providers. Field names follow the backend's JSON
(camelCase) so that models can be dumped straight into request bodies.

Models:
    - OrderData: Immutable order snapshot handed to a payment call.
    - PaymentMethod / PaymentMethodDescriptor: Closed set of payment methods and their catalog entries.
    - CheckoutSelection: Method-specific choices (UPI id, bank, EMI tenure).
    - PaymentResult: Normalized outcome of a successful payment attempt.
    - Coupon: Discount coupon as managed by administrators.
    - CouponVerdict / AppliedCoupon: Outcome of evaluating a coupon against an order.
    - OrderSummary: Itemized totals shown at checkout.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    UPI = "upi"
    PHONEPE = "phonepe"
    GOOGLEPAY = "googlepay"
    PAYTM = "paytm"
    NETBANKING = "netbanking"
    COD = "cod"
    EMI = "emi"


class OrderData(BaseModel):
    """
    Order snapshot handed to a payment call. Frozen once constructed.

    Attributes:
        amount (Decimal): Amount to charge in rupees. Must be positive and finite.
        orderId (str): Storefront order identifier.
        customerName (str): Prefilled into provider checkouts.
        customerEmail (str): Prefilled into provider checkouts.
        customerPhone (str): Prefilled into provider checkouts.
        shippingAddress (str): Attached to the payment as a note.
        razorpayOrderId (str | None): Server-created Razorpay order, if any.
        customerId (str | None): Customer reference sent to Paytm.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    orderId: str
    customerName: str
    customerEmail: str
    customerPhone: str
    shippingAddress: str = ""
    razorpayOrderId: Optional[str] = None
    customerId: Optional[str] = None

    @property
    def amount_paise(self) -> int:
        """Amount in the minor currency unit (paise)."""
        return int((self.amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


class PaymentMethodDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PaymentMethod
    displayName: str
    description: str
    iconGlyph: str
    popularFlag: bool = False


class Bank(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str


class CheckoutSelection(BaseModel):
    """
    Method-specific choices made alongside the payment method.

    Attributes:
        manualUpi (bool): Customer chose to type a UPI id instead of picking an app.
        upiId (str | None): Manually entered UPI id (VPA).
        bankCode (str | None): Net banking bank code, e.g. "HDFC".
        emiTenure (int | None): EMI tenure in months.
    """
    manualUpi: bool = False
    upiId: Optional[str] = None
    bankCode: Optional[str] = None
    emiTenure: Optional[int] = 3


class PaymentResult(BaseModel):
    """
    Normalized outcome of a successful payment attempt, whatever the provider.
    """
    model_config = ConfigDict(frozen=True)

    method: PaymentMethod
    paymentId: Optional[str] = None
    orderId: Optional[str] = None
    signature: Optional[str] = None
    redirectUrl: Optional[str] = None
    status: Optional[str] = None
    providerData: Optional[Dict[str, Any]] = None


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


class Coupon(BaseModel):
    """
    Discount coupon. Codes are unique case-insensitively and always stored
    upper-cased; usage counters are maintained by the backend.
    """
    id: Optional[int] = None
    code: str
    description: str = ""
    discountType: DiscountType = DiscountType.PERCENTAGE
    discountValue: Decimal
    minimumOrderAmount: Decimal = Decimal("0")
    maximumDiscountAmount: Optional[Decimal] = None
    startDate: datetime
    endDate: datetime
    usageLimit: Optional[int] = None
    userUsageLimit: Optional[int] = None
    usageCount: int = 0
    active: bool = True
    firstTimeUserOnly: bool = False
    freeShipping: bool = False

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def check_invariants(self):
        if self.startDate > self.endDate:
            raise ValueError("startDate must not be after endDate")
        if self.discountType == DiscountType.PERCENTAGE:
            if not Decimal("0") < self.discountValue <= Decimal("100"):
                raise ValueError("percentage discountValue must be in (0, 100]")
        elif self.discountValue < 0:
            raise ValueError("discountValue must not be negative")
        return self


class CouponVerdict(BaseModel):
    code: str
    valid: bool
    discount: Optional[Decimal] = None
    reason: Optional[str] = None


class AppliedCoupon(BaseModel):
    code: str
    discount: Decimal
    total: Decimal


class OrderSummary(BaseModel):
    subtotal: Decimal
    shipping: Decimal
    codCharges: Decimal = Decimal("0")
    total: Decimal


PAYMENT_METHODS: List[PaymentMethodDescriptor] = [
    PaymentMethodDescriptor(id=PaymentMethod.RAZORPAY, displayName="Cards, UPI, NetBanking",
                            description="Secure payment via Razorpay", iconGlyph="💳", popularFlag=True),
    PaymentMethodDescriptor(id=PaymentMethod.UPI, displayName="UPI Payment",
                            description="Pay using any UPI app", iconGlyph="📱", popularFlag=True),
    PaymentMethodDescriptor(id=PaymentMethod.PHONEPE, displayName="PhonePe",
                            description="Pay with PhonePe wallet", iconGlyph="📲", popularFlag=True),
    PaymentMethodDescriptor(id=PaymentMethod.GOOGLEPAY, displayName="Google Pay",
                            description="Quick Google Pay checkout", iconGlyph="🎯", popularFlag=True),
    PaymentMethodDescriptor(id=PaymentMethod.PAYTM, displayName="Paytm Wallet",
                            description="Pay with Paytm wallet", iconGlyph="💰"),
    PaymentMethodDescriptor(id=PaymentMethod.NETBANKING, displayName="Net Banking",
                            description="Direct bank transfer", iconGlyph="🏦"),
    PaymentMethodDescriptor(id=PaymentMethod.COD, displayName="Cash on Delivery",
                            description="Pay when you receive", iconGlyph="💵", popularFlag=True),
    PaymentMethodDescriptor(id=PaymentMethod.EMI, displayName="EMI Options",
                            description="Easy monthly installments", iconGlyph="📊"),
]

POPULAR_BANKS: List[Bank] = [
    Bank(code="SBIN", name="State Bank of India"),
    Bank(code="HDFC", name="HDFC Bank"),
    Bank(code="ICIC", name="ICICI Bank"),
    Bank(code="AXIB", name="Axis Bank"),
    Bank(code="PUNB", name="Punjab National Bank"),
    Bank(code="BBKM", name="Bank of Baroda"),
    Bank(code="CNRB", name="Canara Bank"),
    Bank(code="IDFB", name="IDFC First Bank"),
]


def available_payment_methods() -> List[PaymentMethodDescriptor]:
    return list(PAYMENT_METHODS)
