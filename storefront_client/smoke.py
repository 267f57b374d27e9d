"""
smoke.py — Backend Connection Smoke Check

Runs the register → login → cart flow against a live backend and logs each
step. Intended for verifying a deployment or a local setup:

    STOREFRONT_API_URL=http://localhost:8081/api python -m storefront_client.smoke
"""

import asyncio
import sys
import time
from typing import Any, List, Optional

from pydantic import BaseModel

from .clients import ApiClient, StorefrontApi
from .config import API_BASE_URL
from .errors import NetworkError, StorefrontError
from .logging_config import get_logger, setup_logging

log = get_logger(__name__)


class FlowReport(BaseModel):
    email: str
    registrationToken: Optional[str] = None
    loginToken: Optional[str] = None
    role: Optional[str] = None
    cartItems: List[Any] = []


async def run_full_flow(api: StorefrontApi, email: Optional[str] = None,
                        product_id: int = 1, quantity: int = 2) -> FlowReport:
    """
    Registers a fresh user, logs in, adds a product to the cart and reads the cart back.

    Raises:
        StorefrontError: On the first failing step.
    """
    email = email or f"user{int(time.time() * 1000)}@test.com"
    report = FlowReport(email=email)

    log.info("1. Registration")
    registration = await api.register({"name": "John Doe", "email": email,
                                       "password": "password123", "isAdmin": False})
    report.registrationToken = registration.get("token") if isinstance(registration, dict) else None
    if not report.registrationToken:
        raise StorefrontError("Registration did not return a token")
    log.info(f"   Registered {email} (role: {registration.get('role')})")

    log.info("2. Login")
    login = await api.login({"email": email, "password": "password123"})
    report.loginToken = login.get("token") if isinstance(login, dict) else None
    if not report.loginToken:
        raise StorefrontError("Login did not return a token")
    report.role = login.get("role")
    log.info("   Login successful.")

    log.info("3. Authenticated cart access")
    await api.get_cart()

    log.info(f"4. Add product {product_id} x{quantity} to cart")
    await api.add_to_cart(product_id, quantity)

    log.info("5. Read cart")
    report.cartItems = await api.get_cart() or []
    log.info(f"   Cart holds {len(report.cartItems)} item(s).")
    return report


async def _main(base_url: str) -> int:
    async with ApiClient(base_url=base_url) as client:
        try:
            await run_full_flow(StorefrontApi(client))
        except NetworkError as e:
            log.critical(f"Connection failed: {e.message}. Make sure the backend is running at {base_url}.")
            return 2
        except StorefrontError as e:
            log.error(f"Flow failed: {e.message}")
            return 1
    log.info("All steps passed.")
    return 0


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    setup_logging(log_file=None)
    return asyncio.run(_main(argv[0] if argv else API_BASE_URL))


if __name__ == "__main__":
    sys.exit(main())
