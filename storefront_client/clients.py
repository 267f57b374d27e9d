"""
This module provides the communication layer between the storefront client and the backend:
- Session: holds the bearer token of the signed-in user
- ApiClient: the single REST chokepoint (headers, JSON encoding, error normalization)
- StorefrontApi: thin endpoint wrappers for auth, catalog, cart, orders, coupons,
  admin users and the server-side payment glue
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from .config import API_BASE_URL, HTTP_TIMEOUT
from .errors import HttpError, NetworkError

log = logging.getLogger(__name__)


class Session:
    """
    Authentication state of one user, injected into the ApiClient.

    Attributes:
        token (str | None): Bearer token returned by login/register.
    """
    def __init__(self, token: Optional[str] = None):
        self.token = token

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def update(self, token: Optional[str]):
        self.token = token

    def clear(self):
        self.token = None


def _json_default(value):
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _error_message(response: httpx.Response):
    """Returns (message, parsed_body) for a failed response."""
    try:
        data = response.json()
    except ValueError:
        data = None

    message = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
    if not message or not isinstance(message, str):
        message = f"HTTP {response.status_code}: {response.reason_phrase}"
    return message, data


# --- REST Client ---
class ApiClient:
    """
    Client for the storefront REST API.
    Every network call of the package goes through `request()`.
    """
    def __init__(self, base_url: str = API_BASE_URL, session: Optional[Session] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = HTTP_TIMEOUT):
        """
        Args:
            base_url (str): API root, e.g. "http://localhost:8081/api".
            session (Session | None): Session whose token is attached to every request.
            transport (httpx.AsyncBaseTransport | None): Custom transport (mock or ASGI app in tests).
            timeout (float): Connect/read timeout in seconds.
        """
        self.session = session or Session()
        self.client = httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout),
                                        transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def request(self, endpoint: str, method: str = "GET", body: Any = None,
                      headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, Any]] = None):
        """
        Sends a request and returns the decoded response body.

        Args:
            endpoint (str): Path relative to the API root, e.g. "/cart".
            method (str): HTTP method.
            body (Any): JSON-serializable body (dicts, lists, pydantic models, Decimals).
            headers (dict | None): Header overrides, applied last.
            params (dict | None): Query parameters.

        Returns:
            The parsed JSON body; plain text for non-JSON bodies; None for empty bodies.

        Raises:
            NetworkError: If no response was received.
            HttpError: If the response status is not 2xx.
        """
        request_headers = {"Content-Type": "application/json"}
        if self.session.token:
            request_headers["Authorization"] = f"Bearer {self.session.token}"
        if headers:
            request_headers.update(headers)

        content = None
        if body is not None:
            content = json.dumps(body, default=_json_default)

        try:
            response = await self.client.request(method, endpoint, content=content,
                                                 headers=request_headers, params=params)
        except httpx.TransportError as e:
            log.error(f"API request {method} {endpoint} failed: {e!r}")
            raise NetworkError(f"Unable to reach the server: {e}") from e

        if not response.is_success:
            message, data = _error_message(response)
            log.error(f"API request {method} {endpoint} failed with HTTP {response.status_code}: {message}")
            raise HttpError(response.status_code, message, data)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Some mutations answer with plain text
            return response.text


# --- Endpoint wrappers ---
class StorefrontApi:
    """
    Typed-by-name wrappers around the storefront REST contract.
    Each method maps to exactly one endpoint.
    """
    def __init__(self, client: ApiClient):
        self.client = client

    @property
    def session(self) -> Session:
        return self.client.session

    async def _authenticate(self, endpoint, payload):
        data = await self.client.request(endpoint, "POST", body=payload)
        if isinstance(data, dict) and data.get("token"):
            self.session.update(data["token"])
        return data

    # Authentication
    async def login(self, credentials: dict):
        return await self._authenticate("/auth/login", credentials)

    async def register(self, user_data: dict):
        return await self._authenticate("/auth/register", user_data)

    # Products
    async def get_products(self):
        return await self.client.request("/products")

    async def get_product(self, product_id):
        return await self.client.request(f"/products/{product_id}")

    async def create_product(self, product: dict):
        return await self.client.request("/products", "POST", body=product)

    async def update_product(self, product_id, product: dict):
        return await self.client.request(f"/products/{product_id}", "PUT", body=product)

    async def delete_product(self, product_id):
        return await self.client.request(f"/products/{product_id}", "DELETE")

    # Cart
    async def get_cart(self):
        return await self.client.request("/cart")

    async def add_to_cart(self, product_id, quantity: int = 1):
        return await self.client.request("/cart/add", "POST",
                                         params={"productId": product_id, "quantity": quantity})

    async def update_cart_item(self, product_id, quantity: int):
        return await self.client.request(f"/cart/update/{product_id}", "PUT", params={"quantity": quantity})

    async def remove_from_cart(self, product_id):
        return await self.client.request(f"/cart/remove/{product_id}", "DELETE")

    async def clear_cart(self):
        return await self.client.request("/cart/clear", "DELETE")

    # Orders
    async def place_order(self):
        return await self.client.request("/orders/place", "POST")

    async def get_order_history(self):
        return await self.client.request("/orders/history")

    async def get_order(self, order_id):
        return await self.client.request(f"/orders/{order_id}")

    async def get_all_orders(self):
        return await self.client.request("/orders/admin/all")

    async def get_admin_order(self, order_id):
        return await self.client.request(f"/orders/admin/{order_id}")

    async def update_order_status(self, order_id, status: str):
        return await self.client.request(f"/orders/admin/{order_id}/status", "PUT", body={"status": status})

    # Coupons
    async def get_all_coupons(self):
        return await self.client.request("/coupons")

    async def get_active_coupons(self):
        return await self.client.request("/coupons/active")

    async def get_first_time_coupons(self):
        return await self.client.request("/coupons/first-time")

    async def get_coupon(self, coupon_id):
        return await self.client.request(f"/coupons/{coupon_id}")

    async def get_coupon_by_code(self, code: str):
        return await self.client.request(f"/coupons/code/{quote(code, safe='')}")

    async def validate_coupon(self, code: str, amount, first_time_user: bool = False):
        return await self.client.request("/coupons/validate", params={
            "code": code, "amount": amount, "firstTimeUser": first_time_user})

    async def calculate_discount(self, code: str, amount, first_time_user: bool = False):
        return await self.client.request("/coupons/calculate", params={
            "code": code, "amount": amount, "firstTimeUser": first_time_user})

    async def create_coupon(self, coupon: dict):
        return await self.client.request("/coupons", "POST", body=coupon)

    async def update_coupon(self, coupon_id, coupon: dict):
        return await self.client.request(f"/coupons/{coupon_id}", "PUT", body=coupon)

    async def delete_coupon(self, coupon_id):
        return await self.client.request(f"/coupons/{coupon_id}", "DELETE")

    async def increment_coupon_usage(self, code: str):
        return await self.client.request(f"/coupons/increment-usage/{quote(code, safe='')}", "POST")

    # Admin users
    async def get_users_with_stats(self):
        return await self.client.request("/admin/users/with-stats")

    async def get_user(self, user_id):
        return await self.client.request(f"/admin/users/{user_id}")

    async def get_user_statistics(self, user_id):
        return await self.client.request(f"/admin/users/{user_id}/stats")

    async def update_user_status(self, user_id, active: bool):
        return await self.client.request(f"/admin/users/{user_id}/status", "PUT", body={"active": active})

    async def update_user_role(self, user_id, role: str):
        return await self.client.request(f"/admin/users/{user_id}/role", "PUT", body={"role": role})

    # Server-side payment glue
    async def initiate_phonepe(self, payload: dict):
        return await self.client.request("/payment/phonepe/initiate", "POST", body=payload)

    async def initiate_paytm(self, payload: dict):
        return await self.client.request("/payment/paytm/initiate", "POST", body=payload)

    async def confirm_cod(self, payload: dict):
        return await self.client.request("/orders/cod", "POST", body=payload)

    async def verify_payment(self, payload: dict):
        return await self.client.request("/payment/verify", "POST", body=payload)
