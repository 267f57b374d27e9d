"""
Administrative user and order management.

Two sources exist for the admin user list:
    1. primary:  GET /admin/users/with-stats (users with order statistics)
    2. fallback: users derived by scanning every order (GET /orders/admin/all)

`UserDirectory.get_all_users()` tries them in that order and records which one
answered, so callers can tell derived data from authoritative data.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .clients import StorefrontApi
from .errors import HttpError, NetworkError, StorefrontError, ValidationError

log = logging.getLogger(__name__)

ORDER_STATUSES = ("PENDING", "CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED")
ROLE_USER = "ROLE_USER"
ROLE_ADMIN = "ROLE_ADMIN"


def users_from_orders(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Derives one user record per distinct order owner.

    Returns:
        list[dict]: Users with id, name, email, role, status, totalOrders,
        totalSpent and lastOrderDate, ordered by first appearance.
    """
    users: Dict[Any, Dict[str, Any]] = {}
    for order in orders or []:
        owner = order.get("user") or {}
        key = owner.get("id") if owner.get("id") is not None else owner.get("email")
        if key is None:
            continue

        user = users.get(key)
        if user is None:
            user = users[key] = {
                "id": owner.get("id"),
                "name": owner.get("name"),
                "email": owner.get("email"),
                "role": owner.get("role", ROLE_USER),
                "status": "active",
                "totalOrders": 0,
                "totalSpent": Decimal("0"),
                "lastOrderDate": None,
            }

        user["totalOrders"] += 1
        user["totalSpent"] += Decimal(str(order.get("totalAmount") or 0))
        order_date = order.get("orderDate")
        # ISO-8601 strings of one backend compare chronologically
        if order_date and (user["lastOrderDate"] is None or order_date > user["lastOrderDate"]):
            user["lastOrderDate"] = order_date
    return list(users.values())


class UserDirectory:
    """
    Admin access to users.

    Attributes:
        strategy (str | None): "with-stats" or "orders" after a successful
            `get_all_users()` call.
    """
    def __init__(self, api: StorefrontApi):
        self.api = api
        self.strategy: Optional[str] = None

    async def get_all_users(self) -> List[Dict[str, Any]]:
        try:
            users = await self.api.get_users_with_stats()
            self.strategy = "with-stats"
            return users or []
        except (HttpError, NetworkError) as e:
            log.warning(f"User stats endpoint unavailable ({e.message}). Deriving users from orders.")

        users = users_from_orders(await self.api.get_all_orders())
        self.strategy = "orders"
        return users

    async def get_user(self, user_id):
        return await self.api.get_user(user_id)

    async def get_user_statistics(self, user_id):
        return await self.api.get_user_statistics(user_id)

    async def set_active(self, user_id, active: bool):
        try:
            return await self.api.update_user_status(user_id, active)
        except StorefrontError as e:
            log.error(f"Updating status of user {user_id} failed: {e.message}")
            raise

    async def set_role(self, user_id, role: str):
        if role not in (ROLE_USER, ROLE_ADMIN):
            raise ValidationError(f"Unknown role: {role}", field="role")
        try:
            return await self.api.update_user_role(user_id, role)
        except StorefrontError as e:
            log.error(f"Updating role of user {user_id} failed: {e.message}")
            raise

    async def promote(self, user_id):
        return await self.set_role(user_id, ROLE_ADMIN)

    async def demote(self, user_id):
        return await self.set_role(user_id, ROLE_USER)


class OrderAdmin:
    def __init__(self, api: StorefrontApi):
        self.api = api

    async def list_all(self):
        return await self.api.get_all_orders()

    async def get(self, order_id):
        return await self.api.get_admin_order(order_id)

    async def update_status(self, order_id, status: str):
        status = (status or "").strip().upper()
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}", field="status")
        try:
            return await self.api.update_order_status(order_id, status)
        except StorefrontError as e:
            log.error(f"[Order: {order_id}] Status update to {status} failed: {e.message}")
            raise
