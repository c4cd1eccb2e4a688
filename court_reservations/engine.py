"""
Reservation engine: the entry points booking screens and the public
booking flow call.

Read paths (slots, availability, lanes) are pure computations over a store
snapshot. Write paths delegate to the store, which re-validates conflicts
atomically. Expected "no" answers come back as a failed OperationResult;
malformed input and storage failures raise.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, TypeVar

from .availability import check_interval, evaluate_slots, policy_reasons
from .cancellation import evaluate_cancellation
from .config import AppConfig, CourtCatalog
from .errors import (
    ConflictError,
    PolicyViolationError,
    ReservationNotFoundError,
    ReservationStateError,
)
from .holiday_calendar import HolidayCalendar
from .intervals import validate_interval
from .lanes import layout_lanes
from .models import (
    BOOKING_SOURCE_OPERATOR,
    BOOKING_SOURCE_PUBLIC,
    CancellationOutcome,
    ConflictReport,
    Court,
    LaneAssignment,
    OperationResult,
    RenterInfo,
    Reservation,
    ReservationFilters,
    ReservationStatus,
    Slot,
)
from .slots import generate_slots, quote_price, require_slots
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EXPECTED_ERRORS = (ConflictError, PolicyViolationError, ReservationStateError, ReservationNotFoundError)


def default_token_factory() -> str:
    return secrets.token_urlsafe(24)


@dataclass(frozen=True)
class CancellationReceipt:
    reservation: Reservation
    outcome: CancellationOutcome

    def to_dict(self) -> dict[str, Any]:
        return {"reservation": self.reservation.to_dict(), **self.outcome.to_dict()}


@dataclass(frozen=True)
class CourtStatistics:
    court_id: str
    court_name: str
    total_reservations: int
    total_revenue_cents: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "court_id": self.court_id,
            "court_name": self.court_name,
            "total_reservations": self.total_reservations,
            "total_revenue_cents": self.total_revenue_cents,
        }


class ReservationEngine:
    def __init__(
        self,
        catalog: CourtCatalog,
        repository: ReservationYamlRepository,
        clock: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
        holiday_calendar: HolidayCalendar | None = None,
    ) -> None:
        self.catalog = catalog
        self.repository = repository
        self.clock: Callable[[], datetime] = clock or datetime.now
        self.token_factory = token_factory or default_token_factory
        self.holiday_calendar = holiday_calendar

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        clock: Callable[[], datetime] | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> "ReservationEngine":
        settings = config.settings
        repository = ReservationYamlRepository(
            settings.data_dir,
            max_storage_retries=settings.max_storage_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )
        calendar = (
            HolidayCalendar(settings.holiday_country, settings.holiday_subdivision)
            if settings.holiday_country
            else None
        )
        return cls(config.catalog, repository, clock=clock, token_factory=token_factory, holiday_calendar=calendar)

    def courts(self) -> list[Court]:
        return self.catalog.list_courts()

    def generate_slots(self, court_id: str, target_date: date) -> list[Slot]:
        court = self.catalog.court(court_id)
        return generate_slots(court, self.catalog.rules_for(court_id), target_date, self._closed_dates(court, target_date))

    def require_slots(self, court_id: str, target_date: date) -> list[Slot]:
        """Slots for a public-facing flow; a closed day raises NoOperatingHoursError."""
        court = self.catalog.court(court_id)
        return require_slots(court, self.catalog.rules_for(court_id), target_date, self._closed_dates(court, target_date))

    def evaluate_slots(self, court_id: str, target_date: date) -> list[Slot]:
        candidates = self.generate_slots(court_id, target_date)
        if not candidates:
            return []
        return evaluate_slots(candidates, self.repository.reservations_for(court_id, target_date), target_date)

    def check_interval(
        self,
        court_id: str,
        target_date: date,
        start: time,
        end: time,
        public: bool = False,
    ) -> ConflictReport:
        court = self.catalog.court(court_id)
        return check_interval(
            court,
            target_date,
            start,
            end,
            self.repository.reservations_for(court_id, target_date),
            self.clock(),
            public=public,
        )

    def quote_price(self, court_id: str, target_date: date, start: time, end: time) -> int:
        court = self.catalog.court(court_id)
        return quote_price(self.generate_slots(court_id, target_date), start, end, court.default_price_cents)

    def layout_lanes(self, court_id: str, target_date: date) -> dict[str, LaneAssignment]:
        self.catalog.court(court_id)
        return layout_lanes(self.repository.reservations_for(court_id, target_date))

    def list_reservations(self, filters: ReservationFilters | None = None) -> list[Reservation]:
        self.repository.complete_past(self.clock())
        return self.repository.list_reservations(filters)

    def get_reservation(self, reservation_id: str) -> OperationResult[Reservation]:
        return self._run(lambda: self.repository.get_reservation(reservation_id))

    def find_by_tracking_token(self, tracking_token: str) -> OperationResult[Reservation]:
        return self._run(lambda: self.repository.find_by_tracking_token(tracking_token))

    def list_by_access_token(self, access_token: str) -> list[Reservation]:
        return self.repository.list_by_access_token(access_token)

    def court_statistics(self) -> list[CourtStatistics]:
        records = self.repository.get_reservations()
        stats: list[CourtStatistics] = []
        for court in self.courts():
            billable = [
                record
                for record in records
                if record.court_id == court.court_id and record.status != ReservationStatus.CANCELLED
            ]
            stats.append(
                CourtStatistics(
                    court_id=court.court_id,
                    court_name=court.name,
                    total_reservations=len(billable),
                    total_revenue_cents=sum(record.price_cents for record in billable),
                )
            )
        return stats

    def reserve(
        self,
        court_id: str,
        target_date: date,
        start: time,
        end: time,
        renter: RenterInfo,
        price_cents: int | None = None,
        *,
        public: bool = False,
        access_token: str | None = None,
        notes: str | None = None,
    ) -> OperationResult[Reservation]:
        """
        Book [start, end) on ``target_date``.

        Booking rules are checked first; the conflict check that decides the
        outcome runs inside the store's transaction. Public bookings always
        receive a tracking token and reuse ``access_token`` when one is given.
        """
        validate_interval(start, end)
        court = self.catalog.court(court_id)
        now = self.clock()

        def book() -> Reservation:
            self._enforce_policy(court, target_date, start, now, public)
            price = price_cents if price_cents is not None else self.quote_price(court_id, target_date, start, end)
            tracking_token = self.token_factory() if public else None
            renter_token = (access_token or self.token_factory()) if public else access_token
            return self.repository.reserve(
                court_id,
                target_date,
                start,
                end,
                renter,
                price,
                now,
                tracking_token=tracking_token,
                access_token=renter_token,
                booking_source=BOOKING_SOURCE_PUBLIC if public else BOOKING_SOURCE_OPERATOR,
                notes=notes,
            )

        return self._run(book)

    def confirm(self, reservation_id: str) -> OperationResult[Reservation]:
        return self._run(lambda: self.repository.confirm(reservation_id, self.clock()))

    def cancel(self, reservation_id: str) -> OperationResult[CancellationReceipt]:
        now = self.clock()

        def fee_for(reservation: Reservation) -> CancellationOutcome:
            return evaluate_cancellation(reservation, self.catalog.court(reservation.court_id), now)

        def cancel() -> CancellationReceipt:
            reservation, outcome = self.repository.cancel(reservation_id, now, fee_policy=fee_for)
            return CancellationReceipt(reservation=reservation, outcome=outcome)

        return self._run(cancel)

    def reschedule(
        self,
        reservation_id: str,
        new_date: date,
        new_start: time,
        new_end: time,
        public: bool = False,
    ) -> OperationResult[Reservation]:
        validate_interval(new_start, new_end)
        now = self.clock()

        def move() -> Reservation:
            current = self.repository.get_reservation(reservation_id)
            court = self.catalog.court(current.court_id)
            self._enforce_policy(court, new_date, new_start, now, public)
            price = self.quote_price(court.court_id, new_date, new_start, new_end)
            return self.repository.reschedule(reservation_id, new_date, new_start, new_end, now, price_cents=price)

        return self._run(move)

    def cancel_by_token(self, tracking_token: str) -> OperationResult[CancellationReceipt]:
        found = self.find_by_tracking_token(tracking_token)
        if not found.ok or found.value is None:
            return OperationResult.failure(found.error_code or "not_found", found.message or "")
        return self.cancel(found.value.reservation_id)

    def reschedule_by_token(
        self,
        tracking_token: str,
        new_date: date,
        new_start: time,
        new_end: time,
    ) -> OperationResult[Reservation]:
        found = self.find_by_tracking_token(tracking_token)
        if not found.ok or found.value is None:
            return OperationResult.failure(found.error_code or "not_found", found.message or "")
        return self.reschedule(found.value.reservation_id, new_date, new_start, new_end, public=True)

    def complete_past(self) -> int:
        return self.repository.complete_past(self.clock())

    def _closed_dates(self, court: Court, target_date: date) -> frozenset[date]:
        if court.closed_on_holidays and self.holiday_calendar and self.holiday_calendar.is_holiday(target_date):
            return frozenset({target_date})
        return frozenset()

    def _enforce_policy(self, court: Court, target_date: date, start: time, now: datetime, public: bool) -> None:
        reasons = policy_reasons(court, target_date, start, now, public=public)
        if reasons:
            raise PolicyViolationError(reasons[0].message, reasons[0])

    def _run(self, operation: Callable[[], T]) -> OperationResult[T]:
        try:
            return OperationResult.success(operation())
        except ConflictError as error:
            logger.info("Request refused by conflict check: %s", error)
            return OperationResult.failure(error.code, str(error), tuple(error.conflicts))
        except PolicyViolationError as error:
            return OperationResult.failure(error.reason.value, str(error))
        except _EXPECTED_ERRORS as error:
            return OperationResult.failure(error.code, str(error))
