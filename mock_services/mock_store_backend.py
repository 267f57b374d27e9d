"""
mock_store_backend.py — Mock Implementation of the Storefront Backend (REST API)

This module provides an in-memory FastAPI stand-in for the storefront backend,
used by the end-to-end tests and for running the client locally without the
real server.

Simulated areas:
    • Authentication (register / login, bearer tokens)
    • Product catalog and per-user carts
    • Orders, including admin status updates
    • Coupons with server-side applicability and discount rules
    • Admin user management
    • Payment glue (PhonePe / Paytm initiate, COD confirmation, verification)

Simulation Scenarios:
    - Order ids starting with "FAIL-" make the payment initiate endpoints answer
      {"success": false}.
    - Coupon "SUMMER2023" takes 10% off (capped at 500) from orders of 500 or more.

Port:
    Default: 8081 (HTTP), all routes below /api
"""

import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

app = FastAPI(title="Mock Storefront Backend")
api = APIRouter(prefix="/api")
logging.basicConfig(level=logging.INFO)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Request models ---
class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    isAdmin: bool = False


class LoginRequest(BaseModel):
    email: str
    password: str


class ProductIn(BaseModel):
    name: str
    price: float
    description: str = ""
    imageUrl: Optional[str] = None
    stock: int = 100


class StatusUpdate(BaseModel):
    status: str


class ActiveUpdate(BaseModel):
    active: bool


class RoleUpdate(BaseModel):
    role: str


class CouponIn(BaseModel):
    code: str
    description: str = ""
    discountType: str = "PERCENTAGE"
    discountValue: float
    minimumOrderAmount: Optional[float] = 0
    maximumDiscountAmount: Optional[float] = None
    startDate: datetime
    endDate: datetime
    usageLimit: Optional[int] = None
    userUsageLimit: Optional[int] = None
    active: bool = True
    firstTimeUserOnly: bool = False
    freeShipping: bool = False


# --- In-memory state ---
class StoreState:
    """All mutable backend state; `reset()` restores the seed data."""

    def __init__(self):
        self.reset()

    def reset(self):
        now = utcnow()
        self.users: Dict[str, Dict[str, Any]] = {}
        self.tokens: Dict[str, str] = {}
        self.carts: Dict[int, Dict[int, int]] = {}
        self.orders: List[Dict[str, Any]] = []
        self.products: Dict[int, Dict[str, Any]] = {
            1: {"id": 1, "name": "Classic Salted Makhana", "price": 199.0, "description": "Roasted fox nuts",
                "imageUrl": None, "stock": 100},
            2: {"id": 2, "name": "Peri Peri Makhana", "price": 249.0, "description": "Spicy roasted fox nuts",
                "imageUrl": None, "stock": 100},
            3: {"id": 3, "name": "Mint Makhana", "price": 229.0, "description": "Pudina flavour",
                "imageUrl": None, "stock": 100},
        }
        self.coupons: Dict[int, Dict[str, Any]] = {}
        self._next_id = {"user": 1, "order": 1, "coupon": 1, "product": 4}

        self.add_user("Admin", "admin@pinaka.com", "admin123", "ROLE_ADMIN")
        self.add_coupon(CouponIn(code="SUMMER2023", description="Summer sale", discountValue=10,
                                 minimumOrderAmount=500, maximumDiscountAmount=500,
                                 startDate=now - timedelta(days=30), endDate=now + timedelta(days=30)))
        self.add_coupon(CouponIn(code="WELCOME50", description="First order", discountType="FIXED_AMOUNT",
                                 discountValue=50, startDate=now - timedelta(days=30),
                                 endDate=now + timedelta(days=365), firstTimeUserOnly=True))
        self.add_coupon(CouponIn(code="FREESHIP", description="Free shipping", discountType="FREE_SHIPPING",
                                 discountValue=0, startDate=now - timedelta(days=1),
                                 endDate=now + timedelta(days=10), freeShipping=True))
        self.add_coupon(CouponIn(code="WINTER2022", description="Old winter sale", discountValue=15,
                                 startDate=now - timedelta(days=400), endDate=now - timedelta(days=300)))

    def next_id(self, kind: str) -> int:
        value = self._next_id[kind]
        self._next_id[kind] += 1
        return value

    def add_user(self, name, email, password, role="ROLE_USER") -> Dict[str, Any]:
        user = {"id": self.next_id("user"), "name": name, "email": email, "password": password,
                "role": role, "active": True, "joinDate": utcnow().isoformat()}
        self.users[email] = user
        return user

    def issue_token(self, user) -> str:
        token = f"tok_{uuid.uuid4().hex}"
        self.tokens[token] = user["email"]
        return token

    def add_coupon(self, coupon: CouponIn) -> Dict[str, Any]:
        record = coupon.model_dump()
        record["code"] = record["code"].strip().upper()
        record["id"] = self.next_id("coupon")
        record["usageCount"] = 0
        self.coupons[record["id"]] = record
        return record

    def coupon_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        code = code.strip().upper()
        return next((c for c in self.coupons.values() if c["code"] == code), None)


state = StoreState()


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})


def public_user(user) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password"}


def current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")
    email = state.tokens.get(authorization[len("Bearer "):])
    if email is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return state.users[email]


def admin_user(user=Depends(current_user)) -> Dict[str, Any]:
    if user["role"] != "ROLE_ADMIN":
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user


# --- Auth ---
@api.post("/auth/register")
def register(request: RegisterRequest):
    if request.email in state.users:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = state.add_user(request.name, request.email, request.password)
    logging.info(f"[BACKEND] Registered {request.email}")
    return {"token": state.issue_token(user), "name": user["name"], "role": user["role"]}


@api.post("/auth/login")
def login(request: LoginRequest):
    user = state.users.get(request.email)
    if user is None or user["password"] != request.password:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user["active"]:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    return {"token": state.issue_token(user), "name": user["name"], "role": user["role"]}


# --- Products ---
@api.get("/products")
def list_products():
    return list(state.products.values())


@api.get("/products/{product_id}")
def get_product(product_id: int):
    if product_id not in state.products:
        raise HTTPException(status_code=404, detail=f"Product not found with id: {product_id}")
    return state.products[product_id]


@api.post("/products", status_code=201)
def create_product(product: ProductIn, user=Depends(admin_user)):
    record = {"id": state.next_id("product"), **product.model_dump()}
    state.products[record["id"]] = record
    return record


@api.put("/products/{product_id}")
def update_product(product_id: int, product: ProductIn, user=Depends(admin_user)):
    get_product(product_id)
    state.products[product_id] = {"id": product_id, **product.model_dump()}
    return state.products[product_id]


@api.delete("/products/{product_id}", status_code=204)
def delete_product(product_id: int, user=Depends(admin_user)):
    get_product(product_id)
    del state.products[product_id]


# --- Cart ---
def cart_lines(user) -> List[Dict[str, Any]]:
    cart = state.carts.get(user["id"], {})
    return [{"id": index + 1, "product": state.products[pid], "quantity": qty}
            for index, (pid, qty) in enumerate(cart.items())]


@api.get("/cart")
def get_cart(user=Depends(current_user)):
    return cart_lines(user)


@api.post("/cart/add", response_class=PlainTextResponse)
def add_to_cart(productId: int, quantity: int = 1, user=Depends(current_user)):
    get_product(productId)
    if quantity <= 0:
        raise HTTPException(status_code=400, detail="Quantity must be positive")
    cart = state.carts.setdefault(user["id"], {})
    cart[productId] = cart.get(productId, 0) + quantity
    return "Item added to cart"


@api.put("/cart/update/{product_id}", response_class=PlainTextResponse)
def update_cart(product_id: int, quantity: int, user=Depends(current_user)):
    cart = state.carts.setdefault(user["id"], {})
    if product_id not in cart:
        raise HTTPException(status_code=404, detail="Item not in cart")
    if quantity <= 0:
        del cart[product_id]
    else:
        cart[product_id] = quantity
    return "Cart updated"


@api.delete("/cart/remove/{product_id}", response_class=PlainTextResponse)
def remove_from_cart(product_id: int, user=Depends(current_user)):
    state.carts.setdefault(user["id"], {}).pop(product_id, None)
    return "Item removed from cart"


@api.delete("/cart/clear", response_class=PlainTextResponse)
def clear_cart(user=Depends(current_user)):
    state.carts[user["id"]] = {}
    return "Cart cleared"


# --- Orders ---
def create_order(user, status="PENDING", total=None) -> Dict[str, Any]:
    lines = cart_lines(user)
    if total is None:
        total = sum(line["product"]["price"] * line["quantity"] for line in lines)
    order = {"id": state.next_id("order"), "user": public_user(user), "orderDate": utcnow().isoformat(),
             "totalAmount": float(total), "status": status, "items": lines}
    state.orders.append(order)
    state.carts[user["id"]] = {}
    return order


def find_order(order_id: int) -> Dict[str, Any]:
    order = next((o for o in state.orders if o["id"] == order_id), None)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order not found with id: {order_id}")
    return order


@api.post("/orders/place", response_class=PlainTextResponse)
def place_order(user=Depends(current_user)):
    if not state.carts.get(user["id"]):
        raise HTTPException(status_code=400, detail="Cart is empty")
    order = create_order(user)
    return f"Order placed successfully. Order ID: {order['id']}"


@api.post("/orders/cod")
def confirm_cod(payload: Dict[str, Any], user=Depends(current_user)):
    if str(payload.get("orderId", "")).startswith("FAIL-"):
        return {"success": False, "message": "COD not available for this pincode"}
    order = create_order(user, status="CONFIRMED", total=payload.get("amount"))
    logging.info(f"[BACKEND] COD order {order['id']} confirmed for {payload.get('amount')}")
    return {"success": True, "orderId": order["id"]}


@api.get("/orders/history")
def order_history(user=Depends(current_user)):
    return [o for o in state.orders if o["user"]["id"] == user["id"]]


@api.get("/orders/admin/all")
def all_orders(user=Depends(admin_user)):
    return state.orders


@api.get("/orders/admin/{order_id}")
def admin_order(order_id: int, user=Depends(admin_user)):
    return find_order(order_id)


@api.put("/orders/admin/{order_id}/status")
def update_order_status(order_id: int, update: StatusUpdate, user=Depends(admin_user)):
    order = find_order(order_id)
    order["status"] = update.status
    return order


@api.get("/orders/{order_id}")
def get_order(order_id: int, user=Depends(current_user)):
    order = find_order(order_id)
    if order["user"]["id"] != user["id"]:
        raise HTTPException(status_code=403, detail="Access denied")
    return order


# --- Coupons ---
def coupon_usable(coupon, amount: float, first_time_user: bool) -> bool:
    now = utcnow()
    if not coupon["active"] or not coupon["startDate"] <= now <= coupon["endDate"]:
        return False
    if coupon["usageLimit"] is not None and coupon["usageCount"] >= coupon["usageLimit"]:
        return False
    if coupon["minimumOrderAmount"] is not None and amount < coupon["minimumOrderAmount"]:
        return False
    if coupon["firstTimeUserOnly"] and not first_time_user:
        return False
    return True


def coupon_discount(coupon, amount: float) -> float:
    if coupon["discountType"] == "PERCENTAGE":
        discount = amount * coupon["discountValue"] / 100
        if coupon["maximumDiscountAmount"] is not None:
            discount = min(discount, coupon["maximumDiscountAmount"])
        return discount
    if coupon["discountType"] == "FIXED_AMOUNT":
        return min(coupon["discountValue"], amount)
    return 0.0


def find_coupon(coupon_id: int) -> Dict[str, Any]:
    if coupon_id not in state.coupons:
        raise HTTPException(status_code=404, detail=f"Coupon not found with id: {coupon_id}")
    return state.coupons[coupon_id]


def naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None) - (value.utcoffset() or timedelta(0)) if value.tzinfo else value


@api.get("/coupons")
def all_coupons():
    return list(state.coupons.values())


@api.get("/coupons/active")
def active_coupons():
    return [c for c in state.coupons.values() if c["active"]]


@api.get("/coupons/first-time")
def first_time_coupons():
    return [c for c in state.coupons.values() if c["active"] and c["firstTimeUserOnly"]]


@api.get("/coupons/validate")
def validate_coupon(code: str, amount: float, firstTimeUser: bool = False):
    coupon = state.coupon_by_code(code)
    return coupon is not None and coupon_usable(coupon, amount, firstTimeUser)


@api.get("/coupons/calculate")
def calculate_discount(code: str, amount: float, firstTimeUser: bool = False):
    coupon = state.coupon_by_code(code)
    if coupon is None or not coupon_usable(coupon, amount, firstTimeUser):
        return 0.0
    return coupon_discount(coupon, amount)


@api.get("/coupons/code/{code}")
def coupon_by_code(code: str):
    coupon = state.coupon_by_code(code)
    if coupon is None:
        raise HTTPException(status_code=404, detail=f"Coupon not found with code: {code}")
    return coupon


@api.get("/coupons/{coupon_id}")
def get_coupon(coupon_id: int):
    return find_coupon(coupon_id)


@api.post("/coupons", status_code=201)
def create_coupon(coupon: CouponIn, user=Depends(admin_user)):
    if state.coupon_by_code(coupon.code):
        raise HTTPException(status_code=409, detail=f"Coupon code already exists: {coupon.code.upper()}")
    coupon = coupon.model_copy(update={"startDate": naive(coupon.startDate), "endDate": naive(coupon.endDate)})
    return state.add_coupon(coupon)


@api.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: int, coupon: CouponIn, user=Depends(admin_user)):
    record = find_coupon(coupon_id)
    update = coupon.model_dump()
    update.update(code=coupon.code.strip().upper(), startDate=naive(coupon.startDate),
                  endDate=naive(coupon.endDate))
    record.update(update)
    return record


@api.delete("/coupons/{coupon_id}", status_code=204)
def delete_coupon(coupon_id: int, user=Depends(admin_user)):
    find_coupon(coupon_id)
    del state.coupons[coupon_id]


@api.post("/coupons/increment-usage/{code}")
def increment_usage(code: str):
    coupon = coupon_by_code(code)
    coupon["usageCount"] += 1


# --- Admin users ---
def user_stats(user) -> Dict[str, Any]:
    orders = [o for o in state.orders if o["user"]["id"] == user["id"]]
    total = sum(o["totalAmount"] for o in orders)
    breakdown: Dict[str, int] = {}
    for order in orders:
        breakdown[order["status"]] = breakdown.get(order["status"], 0) + 1
    return {
        "totalOrders": len(orders),
        "totalSpent": total,
        "averageOrderValue": total / len(orders) if orders else 0.0,
        "joinDate": user["joinDate"],
        "lastOrderDate": max((o["orderDate"] for o in orders), default=None),
        "orderStatusBreakdown": breakdown,
    }


def find_user(user_id: int) -> Dict[str, Any]:
    user = next((u for u in state.users.values() if u["id"] == user_id), None)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found with id: {user_id}")
    return user


@api.get("/admin/users/with-stats")
def users_with_stats(user=Depends(admin_user)):
    return [{**public_user(u), "status": "active" if u["active"] else "inactive", **user_stats(u)}
            for u in state.users.values()]


@api.get("/admin/users/{user_id}")
def get_user(user_id: int, user=Depends(admin_user)):
    return public_user(find_user(user_id))


@api.get("/admin/users/{user_id}/stats")
def get_user_stats(user_id: int, user=Depends(admin_user)):
    return user_stats(find_user(user_id))


@api.put("/admin/users/{user_id}/status")
def update_user_status(user_id: int, update: ActiveUpdate, user=Depends(admin_user)):
    target = find_user(user_id)
    target["active"] = update.active
    return public_user(target)


@api.put("/admin/users/{user_id}/role")
def update_user_role(user_id: int, update: RoleUpdate, user=Depends(admin_user)):
    if update.role not in ("ROLE_USER", "ROLE_ADMIN"):
        raise HTTPException(status_code=400, detail=f"Invalid role: {update.role}")
    target = find_user(user_id)
    target["role"] = update.role
    return public_user(target)


# --- Payment glue ---
@api.post("/payment/phonepe/initiate")
def phonepe_initiate(payload: Dict[str, Any], user=Depends(current_user)):
    order_id = str(payload.get("orderId", ""))
    if order_id.startswith("FAIL-"):
        return {"success": False}
    return {"success": True, "paymentUrl": f"https://mercury-uat.phonepe.com/transact/{order_id}"}


@api.post("/payment/paytm/initiate")
def paytm_initiate(payload: Dict[str, Any], user=Depends(current_user)):
    order_id = str(payload.get("orderId", ""))
    if order_id.startswith("FAIL-"):
        return {"success": False}
    return {"success": True, "orderId": order_id, "token": f"txn_{uuid.uuid4().hex}"}


@api.post("/payment/verify")
def verify_payment(payload: Dict[str, Any], user=Depends(current_user)):
    verified = bool(payload.get("paymentId")) and bool(payload.get("signature"))
    return {"verified": verified, "checkedAt": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())}


app.include_router(api)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8081)
