from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Optional


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., row already being saved)."""


@dataclass(frozen=True)
class OrderItem:
    """
    One line of an order's items payload.

    Customer surfaces have written several shapes over time
    (item_id / catalogue_item_id / id, qty / quantity, price / unit_price);
    parse_order_items folds them into this one.
    """
    item_id: Optional[str]
    name: str
    qty: int
    price: float

    def to_dict(self) -> dict:
        return asdict(self)


def _first_present(raw: dict, *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _coerce_qty(value: Any) -> int:
    try:
        qty = int(float(value))
    except (TypeError, ValueError):
        return 1
    return max(1, qty)


def _coerce_price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_order_item(raw: Any) -> Optional[OrderItem]:
    """Parse-or-default for one line; non-object lines are dropped."""
    if not isinstance(raw, dict):
        return None
    item_id = _first_present(raw, "item_id", "catalogue_item_id", "id")
    return OrderItem(
        item_id=str(item_id) if item_id is not None else None,
        name=str(_first_present(raw, "name", "title", "item_name") or "Item"),
        qty=_coerce_qty(_first_present(raw, "qty", "quantity")),
        price=_coerce_price(_first_present(raw, "price", "unit_price")),
    )


def parse_order_items(raw: Any) -> list[OrderItem]:
    """
    Items column -> list[OrderItem].

    Accepts a list, a JSON-encoded list, or nothing. Anything unparseable
    yields an empty list rather than an error: a malformed payload must not
    block the partner from progressing the order.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        item = parse_order_item(entry)
        if item is not None:
            items.append(item)
    return items


def normalize_order_row(row: dict) -> dict:
    """Row as read from the row store, with items in canonical shape."""
    out = dict(row)
    if "items" in out:
        out["items"] = [item.to_dict() for item in parse_order_items(out["items"])]
    return out


def parse_page(value: Any) -> int:
    if value in (None, ""):
        return 1
    try:
        page = int(value)
    except (TypeError, ValueError):
        raise ValidationError("page must be an integer")
    if page < 1:
        raise ValidationError("page must be >= 1")
    return page


def parse_location_id(value: Any) -> Optional[int]:
    if value in (None, "", "all", "ALL"):
        return None
    if isinstance(value, bool):
        raise ValidationError("location_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("location_id must be an integer")


def parse_optional_text(value: Any, field: str, max_length: int = 500) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value or None
