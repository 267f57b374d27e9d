"""
Environment configuration for the storefront client.

All settings are read once from environment variables. The defaults point at a
local development backend and at payment-provider sandbox identifiers, so they
must be overridden in production.
"""

import os

# Service addresses
API_BASE_URL = os.environ.get("STOREFRONT_API_URL", "http://localhost:8081/api")
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "10.0"))

# Merchant / provider identifiers (sandbox fallbacks)
STORE_NAME = os.environ.get("STORE_NAME", "Pinaka Makhana Store")
RAZORPAY_KEY_ID = os.environ.get("RAZORPAY_KEY_ID", "rzp_test_key")
RAZORPAY_CHECKOUT_URL = os.environ.get(
    "RAZORPAY_CHECKOUT_URL", "https://checkout.razorpay.com/v1/checkout.js"
)
PAYTM_MERCHANT_ID = os.environ.get("PAYTM_MERCHANT_ID", "test_merchant")
GOOGLE_PAY_MERCHANT_ID = os.environ.get("GOOGLE_PAY_MERCHANT_ID", "12345678901234567890")
GOOGLE_PAY_ENVIRONMENT = os.environ.get("GOOGLE_PAY_ENVIRONMENT", "TEST")
UPI_PAYEE_VPA = os.environ.get("UPI_PAYEE_VPA", "merchant@upi")
