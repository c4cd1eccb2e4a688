from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import StrEnum
from typing import Any, Generic, TypeVar

from .errors import InvalidIntervalError
from .intervals import duration_minutes, validate_interval


class CourtStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class ReservationStatus(StrEnum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


LIVE_STATUSES = frozenset({ReservationStatus.SCHEDULED, ReservationStatus.CONFIRMED})


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class AvailabilityReason(StrEnum):
    TOO_SOON = "too_soon"
    TOO_FAR_AHEAD = "too_far_ahead"
    CONFLICT = "conflict"
    COURT_UNAVAILABLE = "court_unavailable"
    PUBLIC_BOOKING_DISABLED = "public_booking_disabled"

    @property
    def message(self) -> str:
        return _REASON_MESSAGES[self]


_REASON_MESSAGES = {
    AvailabilityReason.TOO_SOON: "Reservations must be made further in advance.",
    AvailabilityReason.TOO_FAR_AHEAD: "The requested date is too far ahead to book.",
    AvailabilityReason.CONFLICT: "The requested time overlaps an existing reservation.",
    AvailabilityReason.COURT_UNAVAILABLE: "The court is not accepting reservations.",
    AvailabilityReason.PUBLIC_BOOKING_DISABLED: "The court does not accept online bookings.",
}

BOOKING_SOURCE_OPERATOR = "operator"
BOOKING_SOURCE_PUBLIC = "public"


def parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    text = str(value).strip()
    try:
        return time.fromisoformat(text)
    except ValueError as error:
        raise InvalidIntervalError(f"Invalid time of day: {text!r}") from error


def format_time(value: time) -> str:
    return value.isoformat(timespec="minutes")


@dataclass(frozen=True)
class Court:
    court_id: str
    name: str
    default_price_cents: int = 0
    cancellation_deadline_hours: int = 24
    cancellation_fee_cents: int = 0
    min_advance_booking_hours: int = 0
    max_advance_booking_days: int = 30
    status: CourtStatus = CourtStatus.ACTIVE
    allow_public_booking: bool = True
    closed_on_holidays: bool = False
    description: str | None = None

    @property
    def is_bookable(self) -> bool:
        return self.status == CourtStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "court_id": self.court_id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "default_price_cents": self.default_price_cents,
            "cancellation_deadline_hours": self.cancellation_deadline_hours,
            "cancellation_fee_cents": self.cancellation_fee_cents,
            "min_advance_booking_hours": self.min_advance_booking_hours,
            "max_advance_booking_days": self.max_advance_booking_days,
            "allow_public_booking": self.allow_public_booking,
            "closed_on_holidays": self.closed_on_holidays,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Court":
        return Court(
            court_id=str(data["court_id"]),
            name=str(data.get("name") or data["court_id"]),
            description=(str(data["description"]) if data.get("description") is not None else None),
            status=CourtStatus(str(data.get("status", CourtStatus.ACTIVE.value))),
            default_price_cents=int(data.get("default_price_cents", 0)),
            cancellation_deadline_hours=int(data.get("cancellation_deadline_hours", 24)),
            cancellation_fee_cents=int(data.get("cancellation_fee_cents", 0)),
            min_advance_booking_hours=int(data.get("min_advance_booking_hours", 0)),
            max_advance_booking_days=int(data.get("max_advance_booking_days", 30)),
            allow_public_booking=bool(data.get("allow_public_booking", True)),
            closed_on_holidays=bool(data.get("closed_on_holidays", False)),
        )


@dataclass(frozen=True)
class OperatingHourRule:
    court_id: str
    day_of_week: int  # date.weekday(): 0=Monday, 6=Sunday
    open_time: time
    close_time: time
    slot_duration_minutes: int
    price_cents: int | None = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if self.slot_duration_minutes <= 0:
            raise ValueError("slot_duration_minutes must be greater than zero")
        validate_interval(self.open_time, self.close_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_of_week": self.day_of_week,
            "open_time": format_time(self.open_time),
            "close_time": format_time(self.close_time),
            "slot_duration_minutes": self.slot_duration_minutes,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
        }

    @staticmethod
    def from_dict(court_id: str, data: dict[str, Any]) -> "OperatingHourRule":
        return OperatingHourRule(
            court_id=court_id,
            day_of_week=int(data["day_of_week"]),
            open_time=parse_time(data["open_time"]),
            close_time=parse_time(data["close_time"]),
            slot_duration_minutes=int(data.get("slot_duration_minutes", 60)),
            price_cents=(int(data["price_cents"]) if data.get("price_cents") is not None else None),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass(frozen=True)
class Slot:
    start: time
    end: time
    price_cents: int
    is_available: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "start_time": format_time(self.start),
            "end_time": format_time(self.end),
            "price_cents": self.price_cents,
        }
        if self.is_available is not None:
            payload["is_available"] = self.is_available
        return payload


@dataclass(frozen=True)
class RenterInfo:
    """Who holds a reservation: a registered member or a walk-in guest.

    Member mode carries ``member_id`` plus the display name and phone the
    caller resolved from the member record. Guest mode carries the contact
    details verbatim and requires a phone number.
    """

    name: str
    phone: str | None = None
    member_id: str | None = None
    email: str | None = None
    tax_id: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("renter name must not be empty")
        if self.member_id is None:
            if not self.phone or not self.phone.strip():
                raise ValueError("guest renters must provide a phone number")
        elif self.tax_id is not None or self.email is not None:
            raise ValueError("member renters cannot carry guest contact fields")

    @classmethod
    def member(cls, member_id: str, name: str, phone: str | None = None) -> "RenterInfo":
        return cls(name=name, phone=phone, member_id=member_id)

    @classmethod
    def guest(cls, name: str, phone: str, email: str | None = None, tax_id: str | None = None) -> "RenterInfo":
        return cls(name=name, phone=phone, email=email, tax_id=tax_id)

    @property
    def is_member(self) -> bool:
        return self.member_id is not None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "phone": self.phone}
        if self.member_id is not None:
            payload["member_id"] = self.member_id
        if self.email is not None:
            payload["email"] = self.email
        if self.tax_id is not None:
            payload["tax_id"] = self.tax_id
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "RenterInfo":
        def _optional(key: str) -> str | None:
            value = data.get(key)
            return str(value) if value is not None and str(value).strip() else None

        return RenterInfo(
            name=str(data.get("name", "")),
            phone=_optional("phone"),
            member_id=_optional("member_id"),
            email=_optional("email"),
            tax_id=_optional("tax_id"),
        )


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    court_id: str
    renter: RenterInfo
    date: date
    start: time
    end: time
    price_cents: int
    status: ReservationStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    payment_method: str | None = None
    tracking_token: str | None = None
    access_token: str | None = None
    booking_source: str = BOOKING_SOURCE_OPERATOR
    cancellation_fee_cents: int = 0
    cancelled_at: datetime | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        validate_interval(self.start, self.end)

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.start, self.end)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.date, self.start)

    @property
    def end_at(self) -> datetime:
        return datetime.combine(self.date, self.end)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "court_id": self.court_id,
            "renter": self.renter.to_dict(),
            "date": self.date.isoformat(),
            "start": format_time(self.start),
            "end": format_time(self.end),
            "duration_minutes": self.duration_minutes,
            "price_cents": self.price_cents,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "payment_method": self.payment_method,
            "booking_source": self.booking_source,
            "cancellation_fee_cents": self.cancellation_fee_cents,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        if self.tracking_token is not None:
            payload["tracking_token"] = self.tracking_token
        if self.access_token is not None:
            payload["access_token"] = self.access_token
        if self.cancelled_at is not None:
            payload["cancelled_at"] = self.cancelled_at.isoformat(timespec="seconds")
        if self.notes is not None:
            payload["notes"] = self.notes
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        return Reservation(
            reservation_id=str(data["reservation_id"]),
            court_id=str(data["court_id"]),
            renter=RenterInfo.from_dict(dict(data.get("renter") or {})),
            date=date.fromisoformat(str(data["date"])),
            start=parse_time(data["start"]),
            end=parse_time(data["end"]),
            price_cents=int(data.get("price_cents", 0)),
            status=ReservationStatus(str(data["status"])),
            payment_status=PaymentStatus(str(data.get("payment_status", PaymentStatus.PENDING.value))),
            payment_method=(str(data["payment_method"]) if data.get("payment_method") is not None else None),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            tracking_token=(str(data["tracking_token"]) if data.get("tracking_token") is not None else None),
            access_token=(str(data["access_token"]) if data.get("access_token") is not None else None),
            booking_source=str(data.get("booking_source", BOOKING_SOURCE_OPERATOR)),
            cancellation_fee_cents=int(data.get("cancellation_fee_cents", 0)),
            cancelled_at=(datetime.fromisoformat(str(data["cancelled_at"])) if data.get("cancelled_at") else None),
            notes=(str(data["notes"]) if data.get("notes") is not None else None),
        )


@dataclass(frozen=True)
class Conflict:
    reservation_id: str
    renter_name: str
    start: time
    end: time

    @staticmethod
    def from_reservation(reservation: Reservation) -> "Conflict":
        return Conflict(
            reservation_id=reservation.reservation_id,
            renter_name=reservation.renter.name,
            start=reservation.start,
            end=reservation.end,
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "reservation_id": self.reservation_id,
            "renter_name": self.renter_name,
            "start": format_time(self.start),
            "end": format_time(self.end),
        }


@dataclass(frozen=True)
class ConflictReport:
    court_id: str
    date: date
    start: time
    end: time
    reasons: tuple[AvailabilityReason, ...] = ()
    conflicts: tuple[Conflict, ...] = ()

    @property
    def available(self) -> bool:
        return not self.reasons

    def to_dict(self) -> dict[str, Any]:
        return {
            "court_id": self.court_id,
            "date": self.date.isoformat(),
            "start": format_time(self.start),
            "end": format_time(self.end),
            "available": self.available,
            "reasons": [{"code": reason.value, "message": reason.message} for reason in self.reasons],
            "conflicts": [conflict.to_dict() for conflict in self.conflicts],
        }


@dataclass(frozen=True)
class CancellationOutcome:
    fee_cents: int
    is_free: bool

    def to_dict(self) -> dict[str, Any]:
        return {"fee_cents": self.fee_cents, "is_free": self.is_free}


@dataclass(frozen=True)
class LaneAssignment:
    lane: int
    total_lanes: int

    def to_dict(self) -> dict[str, int]:
        return {"lane": self.lane, "total_lanes": self.total_lanes}


@dataclass(frozen=True)
class ReservationFilters:
    court_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ReservationStatus | None = None
    payment_status: PaymentStatus | None = None

    def matches(self, reservation: Reservation) -> bool:
        if self.court_id is not None and reservation.court_id != self.court_id:
            return False
        if self.start_date is not None and reservation.date < self.start_date:
            return False
        if self.end_date is not None and reservation.date > self.end_date:
            return False
        if self.status is not None and reservation.status != self.status:
            return False
        if self.payment_status is not None and reservation.payment_status != self.payment_status:
            return False
        return True


T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Single result envelope returned by the engine facade."""

    ok: bool
    value: T | None = None
    error_code: str | None = None
    message: str | None = None
    conflicts: tuple[Conflict, ...] = field(default=())

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error_code: str, message: str, conflicts: tuple[Conflict, ...] = ()) -> "OperationResult[T]":
        return cls(ok=False, error_code=error_code, message=message, conflicts=conflicts)
