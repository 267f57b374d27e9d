import httpx
import pytest

from storefront_client.errors import ProviderSdkError
from storefront_client.providers import (EmbeddedPaytmCheckout, HostGooglePayClient, RecordingNavigator,
                                         ScriptRazorpayCheckout)

SCRIPT_URL = "https://checkout.razorpay.com/v1/checkout.js"


async def test_razorpay_script_is_fetched_on_each_call():
    fetched = []

    def serve(request):
        fetched.append(str(request.url))
        return httpx.Response(200, text="window.Razorpay = function () {};")

    checkout = ScriptRazorpayCheckout(script_url=SCRIPT_URL, transport=httpx.MockTransport(serve))
    await checkout.ensure_loaded()
    await checkout.ensure_loaded()

    assert fetched == [SCRIPT_URL, SCRIPT_URL]


@pytest.mark.parametrize("failure", ["status", "network"])
async def test_razorpay_script_failure_raises_sdk_error(failure):
    def serve(request):
        if failure == "network":
            raise httpx.ConnectError("DNS failure", request=request)
        return httpx.Response(503)

    checkout = ScriptRazorpayCheckout(script_url=SCRIPT_URL, transport=httpx.MockTransport(serve))

    with pytest.raises(ProviderSdkError, match="Razorpay SDK failed to load") as excinfo:
        await checkout.ensure_loaded()
    assert excinfo.value.provider == "razorpay"


def test_razorpay_open_delegates_to_launcher():
    launched = []
    checkout = ScriptRazorpayCheckout(launcher=lambda options, ok, fail: launched.append(options))

    checkout.open({"amount": 100}, print, print)

    assert launched == [{"amount": 100}]


def test_razorpay_open_without_launcher():
    with pytest.raises(ProviderSdkError):
        ScriptRazorpayCheckout().open({}, print, print)


async def test_paytm_without_widget_is_unavailable():
    with pytest.raises(ProviderSdkError, match="Paytm checkout is not available"):
        await EmbeddedPaytmCheckout().ensure_loaded()


async def test_paytm_forwards_to_widget():
    class Widget:
        def __init__(self):
            self.calls = []

        async def init(self, config):
            self.calls.append(("init", config))

        async def invoke(self):
            self.calls.append(("invoke", None))

    widget = Widget()
    checkout = EmbeddedPaytmCheckout(widget)
    await checkout.ensure_loaded()
    await checkout.init({"flow": "DEFAULT"})
    await checkout.invoke()

    assert widget.calls == [("init", {"flow": "DEFAULT"}), ("invoke", None)]


async def test_google_pay_without_bridge_is_unavailable():
    with pytest.raises(ProviderSdkError, match="Google Pay not available"):
        await HostGooglePayClient().ensure_loaded()


async def test_google_pay_bridge_returns_payment_data():
    async def sheet(request):
        return {"echo": request["apiVersion"]}

    client = HostGooglePayClient(sheet, environment="PRODUCTION")
    await client.ensure_loaded()

    assert await client.load_payment_data({"apiVersion": 2}) == {"echo": 2}
    assert client.environment == "PRODUCTION"


def test_recording_navigator():
    navigator = RecordingNavigator()
    navigator.redirect("https://example.com/pay")
    assert navigator.redirects == ["https://example.com/pay"]
