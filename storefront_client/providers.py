"""
Payment provider adapters.

The orchestrator never talks to a provider SDK directly. Each provider is
reached through a small adapter interface that exposes `ensure_loaded()` plus
the provider's own entry points, so the host environment (browser bridge,
webview, test fake) decides how the hosted UI is actually shown.

Adapters:
    - RazorpayCheckout: hosted checkout with success / failure callbacks
    - PaytmCheckout: embedded checkout widget driven by a transaction token
    - GooglePayClient: payment sheet returning the provider's payment data
    - Navigator: full-page redirect to a provider-hosted URL (PhonePe)
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx

from .config import GOOGLE_PAY_ENVIRONMENT, RAZORPAY_CHECKOUT_URL
from .errors import ProviderSdkError

log = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any]], None]


# --- Interfaces ---
class RazorpayCheckout(Protocol):
    async def ensure_loaded(self) -> None:
        """Loads the checkout script. Raises ProviderSdkError on failure."""

    def open(self, options: Dict[str, Any], on_success: Callback, on_failure: Callback) -> None:
        """Opens the hosted checkout; exactly one callback fires when it is done."""


class PaytmCheckout(Protocol):
    async def ensure_loaded(self) -> None:
        ...

    async def init(self, config: Dict[str, Any]) -> None:
        ...

    async def invoke(self) -> None:
        ...


class GooglePayClient(Protocol):
    async def ensure_loaded(self) -> None:
        ...

    async def load_payment_data(self, request: Dict[str, Any]) -> Dict[str, Any]:
        ...


class Navigator(Protocol):
    def redirect(self, url: str) -> None:
        ...


# --- Default implementations ---
class ScriptRazorpayCheckout:
    """
    Razorpay checkout backed by the public checkout script.

    The script is fetched on every `ensure_loaded()` call; nothing is cached
    between payments. Showing the hosted UI is delegated to `launcher`, which
    receives the options and both callbacks.
    """
    def __init__(self, launcher: Optional[Callable[[Dict[str, Any], Callback, Callback], None]] = None,
                 script_url: str = RAZORPAY_CHECKOUT_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.launcher = launcher
        self.script_url = script_url
        self.transport = transport

    async def ensure_loaded(self) -> None:
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
                response = await client.get(self.script_url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            log.error(f"Razorpay checkout script could not be loaded from {self.script_url}: {e!r}")
            raise ProviderSdkError("razorpay", "Razorpay SDK failed to load") from e

    def open(self, options: Dict[str, Any], on_success: Callback, on_failure: Callback) -> None:
        if self.launcher is None:
            raise ProviderSdkError("razorpay", "Razorpay checkout is not available in this environment")
        self.launcher(options, on_success, on_failure)


class EmbeddedPaytmCheckout:
    """Wraps a host-provided Paytm CheckoutJS bridge (an object with async `init` and `invoke`)."""

    def __init__(self, widget: Any = None):
        self.widget = widget

    async def ensure_loaded(self) -> None:
        if self.widget is None:
            raise ProviderSdkError("paytm", "Paytm checkout is not available")

    async def init(self, config: Dict[str, Any]) -> None:
        await self.widget.init(config)

    async def invoke(self) -> None:
        await self.widget.invoke()


class HostGooglePayClient:
    """
    Google Pay payments client.

    Args:
        load_payment_data (callable | None): Host bridge to the Google Pay sheet.
            ``None`` means the Google Pay library is not present.
        environment (str): "TEST" or "PRODUCTION".
    """
    def __init__(self, load_payment_data: Optional[Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = None,
                 environment: str = GOOGLE_PAY_ENVIRONMENT):
        self._load_payment_data = load_payment_data
        self.environment = environment

    async def ensure_loaded(self) -> None:
        if self._load_payment_data is None:
            raise ProviderSdkError("googlepay", "Google Pay not available")

    async def load_payment_data(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return await self._load_payment_data(request)


class RecordingNavigator:
    """Navigator that records redirects; hosts without a browser read `redirects`."""

    def __init__(self):
        self.redirects: List[str] = []

    def redirect(self, url: str) -> None:
        log.info(f"Redirecting to {url}")
        self.redirects.append(url)
