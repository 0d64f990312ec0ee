"""
Typed accessors over the loosely-typed field bags returned by the AI service.

Recognition output is never destructured directly: every amount, date and text
value is read through one of the ``pick_*`` helpers below, which walk a
role-specific chain of synonymous keys and fall back to a role default instead
of raising.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

FieldBag = dict[str, Any]

AMOUNT_KEYS: tuple[str, ...] = (
    "amount",
    "totalAmount",
    "total",
    "price",
    "fare",
    "amountWithoutTax",
)
INVOICE_TOTAL_KEYS: tuple[str, ...] = (
    "totalAmount",
    "amount",
    "total",
    "price",
    "amountWithoutTax",
)
TICKET_FARE_KEYS: tuple[str, ...] = ("amount", "price", "fare", "totalAmount")
HOTEL_FEE_KEYS: tuple[str, ...] = ("amount", "totalAmount", "hotelFee")
HOTEL_DAYS_KEYS: tuple[str, ...] = ("days", "nights", "hotelDays")
TAXI_AMOUNT_KEYS: tuple[str, ...] = ("amount", "price", "totalAmount", "fare", "total")

ZERO = Decimal("0")
CENT = Decimal("0.01")

_AMOUNT_NOISE_RE = re.compile(r"[,，\s¥￥元]")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATETIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]")

_DATE_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y%m%d",
    "%Y年%m月%d日",
    "%Y-%m-%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


def as_bag(value: Any) -> FieldBag:
    return value if isinstance(value, dict) else {}


def is_empty_bag(value: Any) -> bool:
    return not isinstance(value, dict) or not value


def coerce_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return ZERO
        return Decimal(str(value))
    if isinstance(value, str):
        s = _AMOUNT_NOISE_RE.sub("", value)
        if not s:
            return ZERO
        try:
            amount = Decimal(s)
        except InvalidOperation:
            return ZERO
        return amount if amount.is_finite() else ZERO
    return ZERO


def coerce_date(value: Any, *, today: date | None = None) -> str:
    fallback = (today or date.today()).isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, int) and not isinstance(value, bool):
        # 20240110 sometimes comes back as a bare number
        value = str(value)
    if not isinstance(value, str):
        return fallback

    raw = value.strip()
    if not raw:
        return fallback
    if _ISO_DATE_RE.match(raw):
        try:
            return date.fromisoformat(raw).isoformat()
        except ValueError:
            return fallback
    m = _ISO_DATETIME_RE.match(raw)
    if m:
        try:
            return date.fromisoformat(m.group(1)).isoformat()
        except ValueError:
            return fallback

    parsed = parse_date(raw)
    if parsed is None and " " in raw:
        # "2024/01/11 14:32": drop the time of day
        parsed = parse_date(raw.split()[0])
    return parsed.isoformat() if parsed else fallback


def parse_date(raw: str) -> date | None:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def coerce_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value).strip()


def pick_amount(bag: Mapping[str, Any], keys: Iterable[str] = AMOUNT_KEYS) -> Decimal:
    for key in keys:
        amount = coerce_amount(bag.get(key))
        if amount != ZERO:
            return amount
    return ZERO


def pick_text(bag: Mapping[str, Any], keys: Iterable[str], default: str = "") -> str:
    for key in keys:
        text = coerce_text(bag.get(key))
        if text:
            return text
    return default


def pick_date(
    bag: Mapping[str, Any], keys: Iterable[str], *, today: date | None = None
) -> str:
    for key in keys:
        if coerce_text(bag.get(key)):
            return coerce_date(bag.get(key), today=today)
    return coerce_date(None, today=today)


def pick_int(bag: Mapping[str, Any], keys: Iterable[str]) -> int:
    for key in keys:
        amount = coerce_amount(bag.get(key))
        if amount > ZERO:
            return int(amount)
    return 0


def has_any(bag: Mapping[str, Any], keys: Iterable[str]) -> bool:
    return any(key in bag and bag[key] not in (None, "") for key in keys)


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT)
