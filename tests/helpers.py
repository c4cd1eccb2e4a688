from datetime import date, datetime, time

from court_reservations import (
    Court,
    CourtCatalog,
    OperatingHourRule,
    PaymentStatus,
    RenterInfo,
    Reservation,
    ReservationStatus,
)

MONDAY = date(2026, 3, 2)


def make_court(court_id: str = "c1", **overrides) -> Court:
    values = {
        "court_id": court_id,
        "name": f"Court {court_id}",
        "default_price_cents": 8000,
        "cancellation_deadline_hours": 24,
        "cancellation_fee_cents": 2000,
        "min_advance_booking_hours": 0,
        "max_advance_booking_days": 30,
    }
    values.update(overrides)
    return Court(**values)


def make_rule(court_id: str = "c1", day_of_week: int = 0, open_time=time(8, 0), close_time=time(10, 0), **overrides) -> OperatingHourRule:
    values = {
        "court_id": court_id,
        "day_of_week": day_of_week,
        "open_time": open_time,
        "close_time": close_time,
        "slot_duration_minutes": 60,
    }
    values.update(overrides)
    return OperatingHourRule(**values)


def make_catalog(*courts: Court, rules=()) -> CourtCatalog:
    return CourtCatalog(courts={court.court_id: court for court in courts}, rules=list(rules))


def make_reservation(
    reservation_id: str,
    start: time,
    end: time,
    target_date: date = MONDAY,
    court_id: str = "c1",
    status: ReservationStatus = ReservationStatus.SCHEDULED,
    renter_name: str = "Ana",
) -> Reservation:
    created = datetime(2026, 2, 20, 9, 0)
    return Reservation(
        reservation_id=reservation_id,
        court_id=court_id,
        renter=RenterInfo.guest(renter_name, "+55 11 99999-0000"),
        date=target_date,
        start=start,
        end=end,
        price_cents=8000,
        status=status,
        payment_status=PaymentStatus.PENDING,
        created_at=created,
        updated_at=created,
    )
