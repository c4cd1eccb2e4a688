"""
Slot generation from per-weekday operating hours.

Pure computation: no storage access, no clock reads.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Collection, Iterable

from .errors import NoOperatingHoursError
from .intervals import duration_minutes, validate_interval
from .models import Court, OperatingHourRule, Slot


def generate_slots(
    court: Court,
    rules: Iterable[OperatingHourRule],
    target_date: date,
    closed_dates: Collection[date] = (),
) -> list[Slot]:
    """
    Build the ordered candidate slots for a court on one date.

    Algorithm:
    1. A court that is not active, or a date listed in ``closed_dates``, has no slots
    2. Keep the active rules matching the date's weekday
    3. Walk each rule from open to close in steps of its slot duration
    4. Drop a trailing remainder shorter than one slot

    Several matching rules are walked independently and concatenated in
    rule order; overlapping rules are not deduplicated.
    """
    if not court.is_bookable or target_date in closed_dates:
        return []

    weekday = target_date.weekday()
    slots: list[Slot] = []
    for rule in rules:
        if rule.court_id != court.court_id or not rule.is_active or rule.day_of_week != weekday:
            continue
        slots.extend(_walk_rule(rule, target_date, court.default_price_cents))
    return slots


def require_slots(
    court: Court,
    rules: Iterable[OperatingHourRule],
    target_date: date,
    closed_dates: Collection[date] = (),
) -> list[Slot]:
    """Same as generate_slots, but a closed day raises NoOperatingHoursError."""
    slots = generate_slots(court, rules, target_date, closed_dates)
    if not slots:
        raise NoOperatingHoursError(f"{court.name} has no operating hours on {target_date.isoformat()}.")
    return slots


def quote_price(slots: Iterable[Slot], start: time, end: time, hourly_price_cents: int) -> int:
    """
    Price an arbitrary interval.

    When [start, end) is tiled exactly by consecutive slots, the price is the
    sum of their prices. Otherwise the court's default price is treated as
    an hourly rate and pro-rated to the interval's length.
    """
    validate_interval(start, end)

    cursor = start
    total = 0
    for slot in sorted(slots, key=lambda item: item.start):
        if slot.start < cursor:
            continue
        if slot.start > cursor or slot.end > end:
            break
        total += slot.price_cents
        cursor = slot.end
        if cursor == end:
            return total

    return (hourly_price_cents * duration_minutes(start, end)) // 60


def _walk_rule(rule: OperatingHourRule, target_date: date, default_price_cents: int) -> list[Slot]:
    step = timedelta(minutes=rule.slot_duration_minutes)
    price = rule.price_cents if rule.price_cents is not None else default_price_cents
    close_at = datetime.combine(target_date, rule.close_time)

    slots: list[Slot] = []
    cursor = datetime.combine(target_date, rule.open_time)
    while cursor + step <= close_at:
        slot_end = cursor + step
        slots.append(Slot(start=cursor.time(), end=slot_end.time(), price_cents=price))
        cursor = slot_end
    return slots
