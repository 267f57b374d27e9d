"""
Error taxonomy of the storefront client.

Every failure surfaced by the client is a `StorefrontError` carrying a
human-readable `message` suitable for showing to the user.

Hierarchy:
    StorefrontError
    ├── NetworkError                backend unreachable / transport failure
    ├── HttpError                   non-2xx response
    ├── ProviderSdkError            provider script or library missing
    ├── ProviderRejection           payment declined or cancelled by the provider
    ├── PaymentInitializationError  initiate endpoint did not report success
    ├── ValidationError             client-side precondition failed
    │   └── UnsupportedPaymentMethod
    └── PaymentFailure              any error raised after a payment was dispatched
"""

from typing import Any, Optional


class StorefrontError(Exception):
    """Base class for all client errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(StorefrontError):
    """The request never produced an HTTP response."""


class HttpError(StorefrontError):
    """
    The backend answered with a non-2xx status.

    Attributes:
        status_code (int): HTTP status of the response.
        body (Any): Parsed error body, or ``None`` if it could not be parsed.
    """

    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderSdkError(StorefrontError):
    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class ProviderRejection(StorefrontError):
    """
    The provider explicitly declined the payment, or the customer closed the
    hosted checkout.

    Attributes:
        provider (str): Provider name.
        error (Any): Error payload as reported by the provider.
    """

    def __init__(self, provider: str, error: Any = None, message: Optional[str] = None):
        if message is None:
            message = _describe_provider_error(error) or f"{provider} payment was not completed"
        super().__init__(message)
        self.provider = provider
        self.error = error


class PaymentInitializationError(StorefrontError):
    def __init__(self, provider: str, message: str, response: Any = None):
        super().__init__(message)
        self.provider = provider
        self.response = response


class ValidationError(StorefrontError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UnsupportedPaymentMethod(ValidationError):
    def __init__(self, method: Any):
        super().__init__("Payment method not supported", field="method")
        self.method = method


class PaymentFailure(StorefrontError):
    """
    Uniform failure of a dispatched payment attempt.

    Attributes:
        method (str): Payment method id the attempt was dispatched to.
        provider_error (StorefrontError): The underlying error.
    """

    def __init__(self, method: str, provider_error: StorefrontError):
        super().__init__(provider_error.message)
        self.method = method
        self.provider_error = provider_error


def _describe_provider_error(error: Any) -> Optional[str]:
    if isinstance(error, dict):
        return error.get("description") or error.get("reason")
    if isinstance(error, str):
        return error
    return None
