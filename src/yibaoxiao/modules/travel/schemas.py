from __future__ import annotations

from decimal import Decimal

from pydantic import Field, computed_field

from yibaoxiao.core.schemas import CamelModel
from yibaoxiao.modules.extraction.fields import ZERO, FieldBag


class TripLeg(CamelModel):
    date_range: str = ""
    route: str = ""
    transport_fee: Decimal = ZERO
    hotel_location: str = ""
    hotel_days: int = 0
    hotel_fee: Decimal = ZERO
    city_traffic_fee: Decimal = ZERO
    meal_fee: Decimal = ZERO
    other_fee: Decimal = ZERO

    @computed_field(alias="subTotal")
    @property
    def sub_total(self) -> Decimal:
        return (
            self.transport_fee
            + self.hotel_fee
            + self.city_traffic_fee
            + self.meal_fee
            + self.other_fee
        )


class TicketPair(CamelModel):
    outbound: FieldBag
    inbound: FieldBag | None = None

    @property
    def is_round_trip(self) -> bool:
        return self.inbound is not None


class TaxiDetail(CamelModel):
    id: str
    date: str
    reason: str
    route: str = ""
    start_point: str = ""
    end_point: str = ""
    amount: Decimal = Field(default=ZERO, ge=0)
    employee_name: str = ""


class CityTrafficCheck(CamelModel):
    taxi_total: Decimal
    city_traffic_total: Decimal
    diff: Decimal
    is_consistent: bool
