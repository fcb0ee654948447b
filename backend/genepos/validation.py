from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailed
from .models import PAYMENT_METHODS, SaleStatus


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

# Largest value an INTEGER column holds on every supported database
MAX_QUANTITY = 2**31 - 1

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


class FieldError(ValueError):
    """Single-field coercion problem; collected into ValidationFailed."""


class ErrorBag:
    """Collects field -> [messages] and raises them as one ValidationFailed."""

    def __init__(self):
        self.errors: dict[str, list[str]] = {}

    def add(self, key: str, message: str) -> None:
        self.errors.setdefault(key, []).append(message)

    def __contains__(self, key: str) -> bool:
        return key in self.errors

    def raise_if_any(self) -> None:
        if not self.errors:
            return
        messages = [m for msgs in self.errors.values() for m in msgs]
        message = messages[0]
        if len(messages) > 1:
            extra = len(messages) - 1
            message += f" (and {extra} more error{'s' if extra > 1 else ''})"
        raise ValidationFailed(message, errors=self.errors)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - non_negative: integer fields that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    non_negative: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(key: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise FieldError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise FieldError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise FieldError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise FieldError(f"{key} must be an integer")
    if isinstance(value, float):
        raise FieldError(f"{key} must be an integer, not a decimal")
    raise FieldError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if value in (0, 1, "0", "1"):
            return bool(int(value))
        raise FieldError(f"{col.key} must be true or false")

    if isinstance(coltype, JSON):
        if not isinstance(value, dict):
            raise FieldError(f"{col.key} must be an object")
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list, bool)):
            raise FieldError(f"{col.key} must be a string")
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Raises ValidationFailed with every problem found, keyed by field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    bag = ErrorBag()
    cols = _columns_by_key(model)

    if not partial:
        for f in sorted(policy.required_on_create):
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip()):
                bag.add(f, f"The {f} field is required.")

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            bag.add(k, f"Field not allowed: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        if k in bag:
            continue
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable and k in policy.required_on_create:
                bag.add(k, f"{k} cannot be null")
                continue
            if not col.nullable:
                # Non-nullable optional field: fall back to the column default
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except FieldError as e:
            bag.add(k, str(e))
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                bag.add(k, f"{k} cannot be blank")
                continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                bag.add(k, f"{k} exceeds max length {col.type.length}")
                continue

        if k in policy.non_negative and isinstance(val, int):
            if val < 0:
                bag.add(k, f"{k} must be >= 0")
                continue
            if k.endswith("_cents") and val > MAX_AMOUNT_CENTS:
                bag.add(k, f"{k} cannot exceed {MAX_AMOUNT_CENTS}")
                continue

        if isinstance(col.type, Integer) and isinstance(val, int) and abs(val) > MAX_QUANTITY:
            bag.add(k, f"{k} cannot exceed {MAX_QUANTITY}")
            continue

        patch[k] = val

    bag.raise_if_any()
    return patch


def enforce_rules_shop(patch: dict) -> None:
    """Business rules that are not captured by SQLAlchemy metadata alone."""
    bag = ErrorBag()
    currency = patch.get("currency")
    if currency is not None:
        if not CURRENCY_RE.match(currency):
            bag.add("currency", "currency must be a 3-letter code")
        else:
            patch["currency"] = currency.upper()

    email = patch.get("email")
    if email and not EMAIL_RE.match(email):
        bag.add("email", "email must be a valid email address")

    bag.raise_if_any()


def validate_email(email: Any, bag: ErrorBag, key: str = "email") -> str | None:
    if email is None or (isinstance(email, str) and not email.strip()):
        bag.add(key, f"The {key} field is required.")
        return None
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        bag.add(key, f"{key} must be a valid email address")
        return None
    if len(email.strip()) > 255:
        bag.add(key, f"{key} exceeds max length 255")
        return None
    return email.strip().lower()


def _amount(bag: ErrorBag, key: str, value: Any, *, required: bool) -> int | None:
    if value is None:
        if required:
            bag.add(key, f"The {key} field is required.")
        return None
    try:
        cents = coerce_int(key, value)
    except FieldError as e:
        bag.add(key, str(e))
        return None
    if cents < 0:
        bag.add(key, f"{key} must be >= 0")
        return None
    if cents > MAX_AMOUNT_CENTS:
        bag.add(key, f"{key} cannot exceed {MAX_AMOUNT_CENTS}")
        return None
    return cents


def _optional_str(bag: ErrorBag, key: str, value: Any, max_length: int) -> str | None:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        bag.add(key, f"{key} must be a string")
        return None
    s = str(value).strip()
    if len(s) > max_length:
        bag.add(key, f"{key} exceeds max length {max_length}")
        return None
    return s or None


def _bounded_int(bag: ErrorBag, key: str, value: Any, *, minimum: int) -> int | None:
    """Required integer in [minimum, MAX_QUANTITY]; None (and an error) otherwise."""
    if value is None:
        bag.add(key, f"The {key} field is required.")
        return None
    try:
        n = coerce_int(key, value)
    except FieldError as e:
        bag.add(key, str(e))
        return None
    if n < minimum:
        bag.add(key, f"{key} must be at least {minimum}")
        return None
    if n > MAX_QUANTITY:
        bag.add(key, f"{key} cannot exceed {MAX_QUANTITY}")
        return None
    return n


def validate_sale_payload(payload: Any) -> dict:
    """
    Validate a sale posting request.

    Header: subtotal_cents, tax_cents, total_cents required (>= 0),
    discount_cents optional (>= 0, default 0), payment_method in
    PAYMENT_METHODS, optional customer fields and notes.
    Items: non-empty list; each needs product_id, quantity >= 1,
    unit_price_cents >= 0, subtotal_cents >= 0, optional discount_cents >= 0.

    Totals are not reconciled against the items. shop_id, cashier_id,
    cashier_name and status are never read from the payload; the caller's
    session supplies them.
    """
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    bag = ErrorBag()
    data: dict = {}

    data["subtotal_cents"] = _amount(bag, "subtotal_cents", payload.get("subtotal_cents"), required=True)
    data["tax_cents"] = _amount(bag, "tax_cents", payload.get("tax_cents"), required=True)
    data["total_cents"] = _amount(bag, "total_cents", payload.get("total_cents"), required=True)
    discount = _amount(bag, "discount_cents", payload.get("discount_cents"), required=False)
    data["discount_cents"] = discount if discount is not None else 0

    method = payload.get("payment_method")
    if method is None:
        bag.add("payment_method", "The payment_method field is required.")
    elif method not in PAYMENT_METHODS:
        bag.add("payment_method", f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    else:
        data["payment_method"] = method

    data["customer_id"] = _optional_str(bag, "customer_id", payload.get("customer_id"), 64)
    data["customer_name"] = _optional_str(bag, "customer_name", payload.get("customer_name"), 255)
    data["customer_phone"] = _optional_str(bag, "customer_phone", payload.get("customer_phone"), 32)
    data["notes"] = _optional_str(bag, "notes", payload.get("notes"), 10_000)

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        bag.add("items", "The items field is required and must contain at least one item.")
        items = []

    cleaned_items = []
    for i, item in enumerate(items):
        prefix = f"items.{i}"
        if not isinstance(item, dict):
            bag.add(prefix, f"{prefix} must be an object")
            continue

        product_id = _bounded_int(bag, f"{prefix}.product_id", item.get("product_id"), minimum=1)
        quantity = _bounded_int(bag, f"{prefix}.quantity", item.get("quantity"), minimum=1)

        unit_price = _amount(bag, f"{prefix}.unit_price_cents", item.get("unit_price_cents"), required=True)
        subtotal = _amount(bag, f"{prefix}.subtotal_cents", item.get("subtotal_cents"), required=True)
        item_discount = _amount(bag, f"{prefix}.discount_cents", item.get("discount_cents"), required=False)

        cleaned_items.append({
            "product_id": product_id,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "subtotal_cents": subtotal,
            "discount_cents": item_discount if item_discount is not None else 0,
        })

    bag.raise_if_any()
    data["items"] = cleaned_items
    return data


def validate_sale_update(payload: Any) -> dict:
    """Only status (-> cancelled/refunded) and notes may change after posting."""
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    bag = ErrorBag()
    patch: dict = {}

    for k in payload.keys():
        if k not in {"status", "notes"}:
            bag.add(k, f"Field not allowed: {k}")

    if "status" in payload:
        status = payload["status"]
        if status not in SaleStatus.UPDATABLE:
            bag.add("status", f"status must be one of: {', '.join(SaleStatus.UPDATABLE)}")
        else:
            patch["status"] = status

    if "notes" in payload:
        notes = payload["notes"]
        if notes is not None and not isinstance(notes, str):
            bag.add("notes", "notes must be a string")
        else:
            patch["notes"] = notes

    bag.raise_if_any()
    return patch
