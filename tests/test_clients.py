import httpx
import pytest

from storefront_client.clients import ApiClient, Session, StorefrontApi
from storefront_client.errors import HttpError, NetworkError

from .conftest import BASE_URL, RecordingBackend, make_api


async def test_attaches_bearer_token_and_json_content_type():
    backend = RecordingBackend({("GET", "/api/cart"): (200, [])})
    api = make_api(backend, token="tok_123")

    assert await api.get_cart() == []

    request = backend.requests[0]
    assert request.headers["Authorization"] == "Bearer tok_123"
    assert request.headers["Content-Type"] == "application/json"
    assert str(request.url) == "http://testserver/api/cart"


async def test_omits_authorization_without_token():
    backend = RecordingBackend({("GET", "/api/products"): (200, [{"id": 1}])})
    api = make_api(backend)

    assert await api.get_products() == [{"id": 1}]
    assert "Authorization" not in backend.requests[0].headers


async def test_header_overrides_are_applied_last():
    backend = RecordingBackend({("GET", "/api/products"): (200, [])})
    client = ApiClient(base_url=BASE_URL, session=Session("tok_1"), transport=httpx.MockTransport(backend))

    await client.request("/products", headers={"Authorization": "Bearer other"})

    assert backend.requests[0].headers["Authorization"] == "Bearer other"


async def test_serializes_body_and_query_params():
    backend = RecordingBackend({("POST", "/api/cart/add"): lambda r: httpx.Response(200, text="Item added to cart"),
                                ("PUT", "/api/orders/admin/7/status"): (200, {"id": 7, "status": "SHIPPED"})})
    api = make_api(backend, token="tok")

    assert await api.add_to_cart(1, 2) == "Item added to cart"
    assert await api.update_order_status(7, "SHIPPED") == {"id": 7, "status": "SHIPPED"}

    add, update = backend.requests
    assert add.url.params["productId"] == "1"
    assert add.url.params["quantity"] == "2"
    assert RecordingBackend.body(update) == {"status": "SHIPPED"}


async def test_error_message_comes_from_json_body():
    backend = RecordingBackend({("GET", "/api/orders/5"): (403, {"message": "X"})})
    api = make_api(backend, token="tok")

    with pytest.raises(HttpError) as excinfo:
        await api.get_order(5)

    assert excinfo.value.message == "X"
    assert str(excinfo.value) == "X"
    assert excinfo.value.status_code == 403


async def test_unparsable_error_body_yields_synthetic_message():
    backend = RecordingBackend({("GET", "/api/cart"): lambda r: httpx.Response(500, text="<html>boom</html>")})
    api = make_api(backend)

    with pytest.raises(HttpError) as excinfo:
        await api.get_cart()

    assert excinfo.value.message == "HTTP 500: Internal Server Error"
    assert excinfo.value.body is None


async def test_json_error_without_message_yields_synthetic_message():
    backend = RecordingBackend({("GET", "/api/cart"): (404, {"detail": "nope"})})
    api = make_api(backend)

    with pytest.raises(HttpError, match=r"^HTTP 404: Not Found$"):
        await api.get_cart()


async def test_transport_failure_raises_network_error():
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    api = make_api(refuse)

    with pytest.raises(NetworkError):
        await api.get_products()


async def test_empty_body_returns_none():
    backend = RecordingBackend({("DELETE", "/api/coupons/3"): lambda r: httpx.Response(204)})
    api = make_api(backend, token="tok")

    assert await api.delete_coupon(3) is None


async def test_login_stores_token_in_session():
    backend = RecordingBackend({("POST", "/api/auth/login"): (200, {"token": "tok_new", "role": "ROLE_USER"})})
    api = make_api(backend)

    await api.login({"email": "a@b.com", "password": "pw"})

    assert api.session.token == "tok_new"
    assert api.session.is_authenticated


async def test_failed_login_leaves_session_untouched():
    backend = RecordingBackend({("POST", "/api/auth/login"): (401, {"message": "Invalid email or password"})})
    api = make_api(backend, token="tok_old")

    with pytest.raises(HttpError, match="Invalid email or password"):
        await api.login({"email": "a@b.com", "password": "wrong"})

    assert api.session.token == "tok_old"


async def test_coupon_code_is_escaped_in_path():
    backend = RecordingBackend({("POST", "/api/coupons/increment-usage/A/B"): (200, None)})
    api = StorefrontApi(ApiClient(base_url=BASE_URL, transport=httpx.MockTransport(backend)))

    await api.increment_coupon_usage("A/B")

    assert backend.requests[0].url.raw_path == b"/api/coupons/increment-usage/A%2FB"
