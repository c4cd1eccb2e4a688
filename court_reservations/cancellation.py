from __future__ import annotations

from datetime import datetime, timedelta

from .models import CancellationOutcome, Court, Reservation


def evaluate_cancellation(reservation: Reservation, court: Court, now: datetime) -> CancellationOutcome:
    """Free when cancelled more than the court's deadline before the start, else a flat fee."""
    deadline = reservation.start_at - timedelta(hours=court.cancellation_deadline_hours)
    if now < deadline:
        return CancellationOutcome(fee_cents=0, is_free=True)
    return CancellationOutcome(fee_cents=court.cancellation_fee_cents, is_free=False)
