"""
Normalization of ride-hailing itineraries and taxi invoices.

Recognition output for taxi documents is the least consistent of all document
types: the same itinerary may come back as a bare list, under one of several
container keys, or as a single ride. The strategies below are tried in order.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import Decimal
from typing import Any

from yibaoxiao.core.context import AnalysisContext
from yibaoxiao.core.logging import get_logger, log_event
from yibaoxiao.modules.extraction.fields import (
    TAXI_AMOUNT_KEYS,
    ZERO,
    FieldBag,
    has_any,
    pick_amount,
    pick_date,
    pick_text,
)
from yibaoxiao.modules.extraction.schemas import ApprovalData
from yibaoxiao.modules.travel.schemas import CityTrafficCheck, TaxiDetail, TripLeg

logger = get_logger(__name__)

CONTAINER_KEYS = ("details", "trips", "rides", "records", "items")
TAXI_DATE_KEYS = ("date", "invoiceDate", "rideDate")
PASSENGER_KEYS = ("employeeName", "passengerName", "passenger")
DEFAULT_REASON = "市内交通"
CONSISTENCY_TOLERANCE = Decimal("0.01")


def _dicts(items: Sequence[Any]) -> list[FieldBag]:
    return [i for i in items if isinstance(i, dict) and i]


def _from_container(raw: Any) -> list[FieldBag] | None:
    if not isinstance(raw, dict):
        return None
    for key in CONTAINER_KEYS:
        if isinstance(raw.get(key), list):
            return _dicts(raw[key])
    return None


def _looks_like_ride(value: Any) -> bool:
    return isinstance(value, dict) and (
        has_any(value, TAXI_AMOUNT_KEYS) or has_any(value, TAXI_DATE_KEYS)
    )


def _from_any_array(raw: Any) -> list[FieldBag] | None:
    if not isinstance(raw, dict):
        return None
    for value in raw.values():
        if isinstance(value, list) and value and _looks_like_ride(value[0]):
            return _dicts(value)
    return None


_TAXI_SHAPES: tuple[tuple[str, Callable[[Any], list[FieldBag] | None]], ...] = (
    ("array", lambda raw: _dicts(raw) if isinstance(raw, list) else None),
    ("container", _from_container),
    (
        "single",
        lambda raw: [raw] if isinstance(raw, dict) and has_any(raw, TAXI_AMOUNT_KEYS) else None,
    ),
    ("scan", _from_any_array),
)


def normalize_taxi_records(raw: Any) -> list[FieldBag]:
    for name, extract in _TAXI_SHAPES:
        records = extract(raw)
        if records is not None:
            log_event(logger, "travel.taxi.normalized", shape=name, records_count=len(records))
            return records
    return []


def _route(record: FieldBag) -> tuple[str, str, str]:
    start = pick_text(record, ("startPoint", "start", "from"))
    end = pick_text(record, ("endPoint", "end", "to"))
    route = pick_text(record, ("route",))
    if not route and (start or end):
        route = f"{start}-{end}"
    return route, start, end


def process_taxi_details(
    raw: Any, *, approval: ApprovalData | None = None, context: AnalysisContext
) -> list[TaxiDetail]:
    approval = approval or ApprovalData()
    details: list[TaxiDetail] = []
    for idx, record in enumerate(normalize_taxi_records(raw)):
        route, start, end = _route(record)
        details.append(
            TaxiDetail(
                id=f"taxi-{idx + 1}",
                date=pick_date(record, TAXI_DATE_KEYS, today=context.today),
                reason=pick_text(record, ("reason", "purpose"))
                or approval.event_summary
                or DEFAULT_REASON,
                route=route,
                start_point=start,
                end_point=end,
                amount=max(pick_amount(record, TAXI_AMOUNT_KEYS), ZERO),
                employee_name=pick_text(record, PASSENGER_KEYS) or context.user_name,
            )
        )
    return details


def taxi_total(details: Sequence[TaxiDetail]) -> Decimal:
    return sum((d.amount for d in details), ZERO)


def check_city_traffic(legs: Sequence[TripLeg], details: Sequence[TaxiDetail]) -> CityTrafficCheck:
    total = taxi_total(details)
    city_traffic_total = sum((leg.city_traffic_fee for leg in legs), ZERO)
    diff = city_traffic_total - total
    return CityTrafficCheck(
        taxi_total=total,
        city_traffic_total=city_traffic_total,
        diff=diff,
        is_consistent=abs(diff) < CONSISTENCY_TOLERANCE,
    )
