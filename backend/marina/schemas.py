from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, model_validator

from .domain.pricing import CostBreakdown
from .models import Boat, Reservation, ReservationStatus, Slip
from .usecases.boats import BoatDraft
from .usecases.reservations import ConfirmedReservation


class BoatCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    length_ft: int

    def to_draft(self) -> BoatDraft:
        return BoatDraft(name=self.name, length_ft=self.length_ft)


class BoatRead(BaseModel):
    boat_id: int
    name: str
    length_ft: int

    @classmethod
    def from_db(cls, *, boat: Boat) -> "BoatRead":
        return cls(boat_id=boat.id, name=boat.name, length_ft=boat.length_ft)


class SlipRead(BaseModel):
    slip_id: int
    size_ft: int
    location_code: str
    is_available: bool

    @classmethod
    def from_db(cls, *, slip: Slip) -> "SlipRead":
        return cls(
            slip_id=slip.id,
            size_ft=slip.size_ft,
            location_code=slip.location_code,
            is_available=slip.is_available,
        )


class CostRead(BaseModel):
    boat_length_ft: int
    months: int
    base_cost: Decimal
    hookup_cost: Decimal
    total: Decimal

    @field_serializer("base_cost", "hookup_cost", "total")
    def _ser_money(self, value: Decimal) -> str:
        return f"{value:.2f}"

    @classmethod
    def from_breakdown(cls, cost: CostBreakdown) -> "CostRead":
        return cls(
            boat_length_ft=cost.boat_length_ft,
            months=cost.months,
            base_cost=cost.base_cost,
            hookup_cost=cost.hookup_cost,
            total=cost.total,
        )


class _BoatSelection(BaseModel):
    # Dates stay strings so malformed input reaches the date validator.
    start_date: str
    end_date: str
    boat_id: Optional[int] = Field(default=None, ge=1)
    new_boat: Optional[BoatCreate] = None

    @model_validator(mode="after")
    def _one_boat(self) -> "_BoatSelection":
        if (self.boat_id is None) == (self.new_boat is None):
            raise ValueError("provide exactly one of boat_id or new_boat")
        return self

    def boat_draft(self) -> Optional[BoatDraft]:
        return self.new_boat.to_draft() if self.new_boat is not None else None


class AvailabilityQuery(_BoatSelection):
    slip_size_ft: int


class AvailabilityRead(BaseModel):
    start_date: date
    end_date: date
    required_size_ft: int
    candidate_slips: list[SlipRead]
    estimated_cost: CostRead


class ReservationCreate(_BoatSelection):
    slip_id: int = Field(ge=1)


class ReservationCancel(BaseModel):
    version: Optional[int] = Field(default=None, ge=1)


class ReservationBoatChange(BaseModel):
    boat_id: int = Field(ge=1)
    version: Optional[int] = Field(default=None, ge=1)


class ReservationRead(BaseModel):
    reservation_id: int
    confirmation_code: str
    user_id: int
    status: ReservationStatus
    version: int
    start_date: date
    end_date: date
    months: int
    total_cost: Decimal
    slip: SlipRead
    boat: BoatRead

    @field_serializer("total_cost")
    def _ser_money(self, value: Decimal) -> str:
        return f"{value:.2f}"

    @classmethod
    def from_db(cls, *, reservation: Reservation, slip: Slip, boat: Boat) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            confirmation_code=reservation.confirmation_code,
            user_id=reservation.user_id,
            status=reservation.status,
            version=reservation.version,
            start_date=reservation.start_date,
            end_date=reservation.end_date,
            months=reservation.months,
            total_cost=reservation.total_cost,
            slip=SlipRead.from_db(slip=slip),
            boat=BoatRead.from_db(boat=boat),
        )


class ReservationConfirmation(ReservationRead):
    cost: CostRead
    boat_created: bool = False

    @classmethod
    def from_confirmed(cls, confirmed: ConfirmedReservation) -> "ReservationConfirmation":
        read = ReservationRead.from_db(reservation=confirmed.reservation, slip=confirmed.slip, boat=confirmed.boat)
        return cls(
            **dict(read),
            cost=CostRead.from_breakdown(confirmed.cost),
            boat_created=confirmed.boat_created,
        )
