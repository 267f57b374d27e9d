"""
coupons.py — Coupon Evaluation and Coupon Administration

Checkout side:
    CouponEvaluator asks the backend whether a code applies to an order
    (validate) and how much it takes off (calculate). The only arithmetic done
    locally is subtracting the returned discount from the displayed total.

Back-office side:
    CouponAdmin wraps the coupon CRUD endpoints. Forms are validated before any
    request is sent, and a failed request leaves nothing half-applied.
    Coupon status (Active / Inactive / Upcoming / Expired) is derived from the
    coupon's dates and is never stored.
"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from .clients import StorefrontApi
from .errors import StorefrontError, ValidationError
from .models import AppliedCoupon, Coupon, CouponVerdict, DiscountType

log = logging.getLogger(__name__)

STATUS_FILTERS = ("all", "active", "inactive", "expired", "upcoming", "first-time", "free-shipping")


# --- Form handling ---
def _text(form: Dict[str, Any], key: str) -> str:
    value = form.get(key)
    return str(value).strip() if value is not None else ""


def _number(value) -> Optional[Decimal]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _integer(value) -> Optional[int]:
    number = _number(value)
    return int(number) if number is not None else None


def _datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def validate_coupon_form(form: Dict[str, Any]) -> None:
    """
    Checks an admin coupon form (raw input values, usually strings).

    Raises:
        ValidationError: With a distinct message for each failed rule.
    """
    if not _text(form, "code"):
        raise ValidationError("Coupon code is required", field="code")
    if not _text(form, "description"):
        raise ValidationError("Description is required", field="description")

    discount_type = _text(form, "discountType") or DiscountType.PERCENTAGE.value
    if discount_type not in DiscountType.__members__:
        raise ValidationError(f"Unknown discount type: {discount_type}", field="discountType")

    discount_value = _number(form.get("discountValue"))
    if discount_value is None or discount_value <= 0:
        raise ValidationError("Discount value must be greater than 0", field="discountValue")
    if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%", field="discountValue")

    if form.get("startDate") in (None, ""):
        raise ValidationError("Start date is required", field="startDate")
    if form.get("endDate") in (None, ""):
        raise ValidationError("End date is required", field="endDate")

    start, end = _datetime(form["startDate"]), _datetime(form["endDate"])
    if start is None:
        raise ValidationError("Start date is not a valid date", field="startDate")
    if end is None:
        raise ValidationError("End date is not a valid date", field="endDate")
    if _naive_utc(start) > _naive_utc(end):
        raise ValidationError("End date must be after start date", field="endDate")


def build_coupon_payload(form: Dict[str, Any]) -> Dict[str, Any]:
    """Normalizes a validated form into the JSON body the backend expects."""
    discount_type = _text(form, "discountType") or DiscountType.PERCENTAGE.value
    return {
        "code": _text(form, "code").upper(),
        "description": _text(form, "description"),
        "discountType": discount_type,
        "discountValue": _number(form.get("discountValue")),
        "minimumOrderAmount": _number(form.get("minimumOrderAmount")) or Decimal("0"),
        "maximumDiscountAmount": _number(form.get("maximumDiscountAmount")),
        "startDate": _datetime(form["startDate"]).isoformat(),
        "endDate": _datetime(form["endDate"]).isoformat(),
        "usageLimit": _integer(form.get("usageLimit")),
        "userUsageLimit": _integer(form.get("userUsageLimit")),
        "active": bool(form.get("active", True)),
        "firstTimeUserOnly": bool(form.get("firstTimeUserOnly", False)),
        "freeShipping": bool(form.get("freeShipping", False)),
    }


# --- Derived status & filtering ---
def coupon_status(active: bool, start_date: datetime, end_date: datetime,
                  now: Optional[datetime] = None) -> str:
    """Status shown for a coupon at time `now` (defaults to the current UTC time)."""
    if not active:
        return "Inactive"
    now = _naive_utc(now or datetime.now(timezone.utc))
    if now < _naive_utc(start_date):
        return "Upcoming"
    if now > _naive_utc(end_date):
        return "Expired"
    return "Active"


def filter_coupons(coupons: Iterable[Coupon], search: str = "", status: str = "all",
                   now: Optional[datetime] = None) -> List[Coupon]:
    """
    Filters coupons by free text (code or description) and by a status filter.

    Args:
        coupons: Coupons to filter.
        search (str): Case-insensitive substring.
        status (str): One of STATUS_FILTERS.
        now (datetime | None): Reference time for "expired" / "upcoming".
    """
    if status not in STATUS_FILTERS:
        raise ValidationError(f"Unknown status filter: {status}", field="status")
    now = _naive_utc(now or datetime.now(timezone.utc))
    term = (search or "").strip().lower()

    def matches(coupon: Coupon) -> bool:
        if term and term not in coupon.code.lower() and term not in (coupon.description or "").lower():
            return False
        if status == "active":
            return coupon.active
        if status == "inactive":
            return not coupon.active
        if status == "expired":
            return _naive_utc(coupon.endDate) < now
        if status == "upcoming":
            return _naive_utc(coupon.startDate) > now
        if status == "first-time":
            return coupon.firstTimeUserOnly
        if status == "free-shipping":
            return coupon.freeShipping
        return True

    return [coupon for coupon in coupons if matches(coupon)]


# --- Checkout evaluation ---
def _discount(value) -> Decimal:
    if isinstance(value, dict):
        value = value.get("discount")
    number = _number(value)
    if number is None:
        raise StorefrontError(f"Unexpected discount response: {value!r}")
    return number


def _is_flag_text(value) -> bool:
    return isinstance(value, str) and value.strip().lower() in ("true", "false")


def _flag(value) -> bool:
    """Backend booleans may arrive as JSON booleans or as "true" / "false" text."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class CouponEvaluator:
    """
    Server-backed coupon checks for checkout. Holds no state between calls.
    """
    def __init__(self, api: StorefrontApi):
        self.api = api

    @staticmethod
    def _prepare(code: str, amount):
        code = (code or "").strip().upper()
        if not code:
            raise ValidationError("Please enter a coupon code", field="code")
        amount = _number(amount)
        if amount is None or amount <= 0:
            raise ValidationError("Order amount must be greater than 0", field="amount")
        return code, amount

    async def validate(self, code: str, amount, first_time_user: bool = False) -> CouponVerdict:
        """
        Asks the backend whether `code` applies to an order of `amount`.

        The backend may answer with a bare boolean or with an object
        ``{"valid": bool, "discount": number?, "message": str?}``.
        """
        code, amount = self._prepare(code, amount)
        data = await self.api.validate_coupon(code, amount, first_time_user)

        if _is_flag_text(data):
            data = _flag(data)
        if isinstance(data, bool):
            verdict = CouponVerdict(code=code, valid=data)
        elif isinstance(data, dict):
            discount = data.get("discount")
            verdict = CouponVerdict(
                code=code,
                valid=_flag(data.get("valid")),
                discount=_discount(discount) if discount is not None else None,
                reason=data.get("message") or data.get("reason"),
            )
        else:
            raise StorefrontError(f"Unexpected coupon validation response: {data!r}")

        if not verdict.valid and not verdict.reason:
            verdict = verdict.model_copy(update={"reason": "Coupon is not applicable to this order"})
        log.info(f"[Coupon: {code}] Validated against {amount} INR: valid={verdict.valid}")
        return verdict

    async def calculate(self, code: str, amount, first_time_user: bool = False) -> Decimal:
        code, amount = self._prepare(code, amount)
        return _discount(await self.api.calculate_discount(code, amount, first_time_user))

    async def apply(self, code: str, amount, first_time_user: bool = False) -> AppliedCoupon:
        """
        Validates the coupon and returns the discounted total to display.
        The discount is only calculated remotely when the verdict did not carry one.

        Raises:
            ValidationError: If the coupon does not apply.
        """
        verdict = await self.validate(code, amount, first_time_user)
        if not verdict.valid:
            raise ValidationError(verdict.reason, field="code")

        discount = verdict.discount
        if discount is None:
            discount = await self.calculate(verdict.code, amount, first_time_user)

        amount = _number(amount)
        total = max(amount - discount, Decimal("0"))
        log.info(f"[Coupon: {verdict.code}] Discount {discount} INR applied, total {total} INR.")
        return AppliedCoupon(code=verdict.code, discount=discount, total=total)

    async def redeem(self, code: str):
        """Counts one use of the coupon. Call only once the order is confirmed."""
        code = (code or "").strip().upper()
        log.info(f"[Coupon: {code}] Incrementing usage.")
        return await self.api.increment_coupon_usage(code)


# --- Back office ---
def _coupons(data) -> List[Coupon]:
    return [Coupon.model_validate(item) for item in data or []]


class CouponAdmin:
    """Coupon management for administrators."""

    def __init__(self, api: StorefrontApi):
        self.api = api

    async def list_all(self) -> List[Coupon]:
        return _coupons(await self.api.get_all_coupons())

    async def list_active(self) -> List[Coupon]:
        return _coupons(await self.api.get_active_coupons())

    async def list_first_time(self) -> List[Coupon]:
        return _coupons(await self.api.get_first_time_coupons())

    async def search(self, search: str = "", status: str = "all", now: Optional[datetime] = None) -> List[Coupon]:
        return filter_coupons(await self.list_all(), search, status, now)

    async def get(self, coupon_id) -> Coupon:
        return Coupon.model_validate(await self.api.get_coupon(coupon_id))

    async def get_by_code(self, code: str) -> Coupon:
        return Coupon.model_validate(await self.api.get_coupon_by_code(code.strip().upper()))

    async def create(self, form: Dict[str, Any]) -> Coupon:
        validate_coupon_form(form)
        payload = build_coupon_payload(form)
        try:
            data = await self.api.create_coupon(payload)
        except StorefrontError as e:
            log.error(f"[Coupon: {payload['code']}] Creation failed: {e.message}")
            raise
        log.info(f"[Coupon: {payload['code']}] Created.")
        return Coupon.model_validate(data)

    async def update(self, coupon_id, form: Dict[str, Any]) -> Coupon:
        validate_coupon_form(form)
        payload = build_coupon_payload(form)
        try:
            data = await self.api.update_coupon(coupon_id, payload)
        except StorefrontError as e:
            log.error(f"[Coupon: {payload['code']}] Update of coupon {coupon_id} failed: {e.message}")
            raise
        log.info(f"[Coupon: {payload['code']}] Updated.")
        return Coupon.model_validate(data)

    async def delete(self, coupon_id) -> None:
        try:
            await self.api.delete_coupon(coupon_id)
        except StorefrontError as e:
            log.error(f"Deleting coupon {coupon_id} failed: {e.message}")
            raise
        log.info(f"Coupon {coupon_id} deleted.")

    async def toggle_active(self, coupon: Coupon) -> Coupon:
        """Flips the coupon's active flag; the passed model is left unchanged."""
        payload = coupon.model_dump(exclude={"id"})
        payload["active"] = not coupon.active
        try:
            data = await self.api.update_coupon(coupon.id, payload)
        except StorefrontError as e:
            log.error(f"[Coupon: {coupon.code}] Status update failed: {e.message}")
            raise
        log.info(f"[Coupon: {coupon.code}] {'Activated' if payload['active'] else 'Deactivated'}.")
        return Coupon.model_validate(data)
