from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from yibaoxiao.core.logging import get_logger, log_event
from yibaoxiao.modules.extraction.fields import (
    HOTEL_DAYS_KEYS,
    HOTEL_FEE_KEYS,
    TICKET_FARE_KEYS,
    ZERO,
    FieldBag,
    as_bag,
    coerce_text,
    is_empty_bag,
    pick_amount,
    pick_date,
    pick_int,
    pick_text,
)
from yibaoxiao.modules.travel.schemas import TicketPair, TripLeg

logger = get_logger(__name__)

DEPARTURE_KEYS = ("departure", "fromStation")
DESTINATION_KEYS = ("destination", "toStation")
TICKET_DATE_KEYS = ("departureDate", "date")


def _extract_records(raw: Any, key: str) -> list[FieldBag]:
    if isinstance(raw, list):
        return [r for r in raw if isinstance(r, dict) and r]
    if isinstance(raw, dict) and isinstance(raw.get(key), list):
        return [r for r in raw[key] if isinstance(r, dict) and r]
    if is_empty_bag(raw):
        return []
    return [raw]


def extract_tickets(raw: Any) -> list[FieldBag]:
    return _extract_records(raw, "tickets")


def extract_hotels(raw: Any) -> list[FieldBag]:
    return _extract_records(raw, "hotels")


def ticket_endpoints(ticket: FieldBag) -> tuple[str, str]:
    return pick_text(ticket, DEPARTURE_KEYS), pick_text(ticket, DESTINATION_KEYS)


def pair_tickets(tickets: Sequence[FieldBag]) -> list[TicketPair]:
    """
    Pair outbound tickets with their return tickets.

    A ticket D→E is paired with the first not-yet-consumed ticket E→D that
    comes later in recognition order. Output order follows the
    input; nothing is sorted by date.
    """
    endpoints = [ticket_endpoints(as_bag(t)) for t in tickets]
    consumed: set[int] = set()
    pairs: list[TicketPair] = []

    for idx, ticket in enumerate(tickets):
        if idx in consumed:
            continue
        consumed.add(idx)
        departure, destination = endpoints[idx]

        return_idx = None
        if departure and destination:
            for j, (dep, dest) in enumerate(endpoints):
                if j in consumed:
                    continue
                if dep == destination and dest == departure:
                    return_idx = j
                    break

        if return_idx is None:
            pairs.append(TicketPair(outbound=as_bag(ticket)))
        else:
            consumed.add(return_idx)
            pairs.append(TicketPair(outbound=as_bag(ticket), inbound=as_bag(tickets[return_idx])))

    log_event(
        logger,
        "travel.pairing.done",
        tickets_count=len(tickets),
        pairs_count=len(pairs),
        round_trips=sum(1 for p in pairs if p.is_round_trip),
    )
    return pairs


def match_hotel(hotels: Sequence[FieldBag], destination: str) -> FieldBag | None:
    if not destination:
        return None
    for hotel in hotels:
        city = coerce_text(hotel.get("city"))
        location = coerce_text(hotel.get("location"))
        if city and (city == destination or destination in city or city in destination):
            return hotel
        if location and (destination in location or location in destination):
            return hotel
    return None


def _dotted(iso: str) -> str:
    return iso.replace("-", ".")


def build_trip_legs(
    pairs: Sequence[TicketPair], hotels: Sequence[FieldBag], *, today: date | None = None
) -> list[TripLeg]:
    legs: list[TripLeg] = []
    for pair in pairs:
        outbound = pair.outbound
        inbound = pair.inbound or {}
        departure, destination = ticket_endpoints(outbound)

        outbound_date = pick_date(outbound, TICKET_DATE_KEYS, today=today)
        return_date = (
            pick_date(inbound, TICKET_DATE_KEYS, today=today)
            if pick_text(inbound, TICKET_DATE_KEYS)
            else outbound_date
        )

        hotel = match_hotel(hotels, destination) or {}
        legs.append(
            TripLeg(
                date_range=f"{_dotted(outbound_date)}-{_dotted(return_date)}",
                route=f"{departure}-{destination}",
                transport_fee=pick_amount(outbound, TICKET_FARE_KEYS)
                + pick_amount(inbound, TICKET_FARE_KEYS),
                hotel_location=destination,
                hotel_days=pick_int(hotel, HOTEL_DAYS_KEYS),
                hotel_fee=pick_amount(hotel, HOTEL_FEE_KEYS),
            )
        )
    return legs


def allocate_city_traffic(legs: list[TripLeg], total: Decimal) -> list[TripLeg]:
    # TODO: split the taxi total across legs by ride date once rides carry reliable dates.
    if legs and total > ZERO:
        legs[0].city_traffic_fee = total
    return legs


def sum_subtotals(legs: Sequence[TripLeg]) -> Decimal:
    return sum((leg.sub_total for leg in legs), ZERO)
