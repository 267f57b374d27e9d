"""
Storefront client: REST access to the store backend, payment orchestration
across Indian payment providers, and coupon evaluation / administration.
"""

from .clients import ApiClient, Session, StorefrontApi
from .coupons import CouponAdmin, CouponEvaluator, coupon_status, filter_coupons, validate_coupon_form
from .errors import (HttpError, NetworkError, PaymentFailure, PaymentInitializationError, ProviderRejection,
                     ProviderSdkError, StorefrontError, UnsupportedPaymentMethod, ValidationError)
from .models import (PAYMENT_METHODS, POPULAR_BANKS, CheckoutSelection, Coupon, OrderData, PaymentMethod,
                     PaymentResult, available_payment_methods)
from .users import OrderAdmin, UserDirectory
from .workflow import PaymentOrchestrator, charged_total, monthly_installment, order_summary

__all__ = [
    "ApiClient", "Session", "StorefrontApi",
    "CouponAdmin", "CouponEvaluator", "coupon_status", "filter_coupons", "validate_coupon_form",
    "HttpError", "NetworkError", "PaymentFailure", "PaymentInitializationError", "ProviderRejection",
    "ProviderSdkError", "StorefrontError", "UnsupportedPaymentMethod", "ValidationError",
    "PAYMENT_METHODS", "POPULAR_BANKS", "CheckoutSelection", "Coupon", "OrderData", "PaymentMethod",
    "PaymentResult", "available_payment_methods",
    "OrderAdmin", "UserDirectory",
    "PaymentOrchestrator", "charged_total", "monthly_installment", "order_summary",
]
