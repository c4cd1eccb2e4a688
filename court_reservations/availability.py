"""
Availability evaluation against existing reservations.

Reads here are advisory: they work on whatever snapshot the caller passes
in. The store re-checks conflicts when it commits.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Iterable

from .intervals import overlaps, validate_interval
from .models import AvailabilityReason, Conflict, ConflictReport, Court, Reservation, Slot


def find_conflicts(
    target_date: date,
    start: time,
    end: time,
    existing_reservations: Iterable[Reservation],
    exclude_reservation_id: str | None = None,
) -> list[Conflict]:
    """Live reservations on ``target_date`` overlapping [start, end), ordered by start time."""
    validate_interval(start, end)

    overlapping = [
        reservation
        for reservation in existing_reservations
        if reservation.is_live
        and reservation.date == target_date
        and reservation.reservation_id != exclude_reservation_id
        and overlaps(start, end, reservation.start, reservation.end)
    ]
    overlapping.sort(key=lambda reservation: (reservation.start, reservation.reservation_id))
    return [Conflict.from_reservation(reservation) for reservation in overlapping]


def evaluate_slots(
    candidate_slots: Iterable[Slot],
    existing_reservations: Iterable[Reservation],
    target_date: date | None = None,
) -> list[Slot]:
    """Mark each candidate slot available unless a live reservation overlaps it.

    ``existing_reservations`` are expected to belong to the slots' court and
    date; pass ``target_date`` to filter a wider list.
    """
    live = [
        reservation
        for reservation in existing_reservations
        if reservation.is_live and (target_date is None or reservation.date == target_date)
    ]
    return [
        replace(
            slot,
            is_available=not any(overlaps(slot.start, slot.end, item.start, item.end) for item in live),
        )
        for slot in candidate_slots
    ]


def policy_reasons(
    court: Court,
    target_date: date,
    start: time,
    now: datetime,
    public: bool = False,
) -> list[AvailabilityReason]:
    """Booking-rule violations for a request, independent of conflicts."""
    reasons: list[AvailabilityReason] = []
    if not court.is_bookable:
        reasons.append(AvailabilityReason.COURT_UNAVAILABLE)
    if public and not court.allow_public_booking:
        reasons.append(AvailabilityReason.PUBLIC_BOOKING_DISABLED)

    start_at = datetime.combine(target_date, start)
    if start_at - now < timedelta(hours=court.min_advance_booking_hours):
        reasons.append(AvailabilityReason.TOO_SOON)
    if (target_date - now.date()).days > court.max_advance_booking_days:
        reasons.append(AvailabilityReason.TOO_FAR_AHEAD)
    return reasons


def check_interval(
    court: Court,
    target_date: date,
    start: time,
    end: time,
    existing_reservations: Iterable[Reservation],
    now: datetime,
    public: bool = False,
) -> ConflictReport:
    """
    Evaluate a direct booking request for [start, end) on ``target_date``.

    "Unavailable" is a normal outcome and is reported through the returned
    reasons, never raised. Only a malformed interval raises.
    """
    validate_interval(start, end)

    reasons = policy_reasons(court, target_date, start, now, public=public)
    conflicts = find_conflicts(
        target_date,
        start,
        end,
        (reservation for reservation in existing_reservations if reservation.court_id == court.court_id),
    )
    if conflicts:
        reasons.append(AvailabilityReason.CONFLICT)

    return ConflictReport(
        court_id=court.court_id,
        date=target_date,
        start=start,
        end=end,
        reasons=tuple(reasons),
        conflicts=tuple(conflicts),
    )
