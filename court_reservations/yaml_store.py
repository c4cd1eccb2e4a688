from __future__ import annotations

import logging
import shutil
import threading
import time as time_module
from dataclasses import replace
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, TypeVar
from uuid import uuid4

import yaml
from filelock import FileLock, Timeout

from .availability import find_conflicts
from .errors import ConflictError, ReservationNotFoundError, ReservationStateError, StorageError
from .intervals import validate_interval
from .models import (
    BOOKING_SOURCE_OPERATOR,
    CancellationOutcome,
    PaymentStatus,
    RenterInfo,
    Reservation,
    ReservationFilters,
    ReservationStatus,
    format_time,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FeePolicy = Callable[[Reservation], CancellationOutcome]

LOCK_TIMEOUT_SECONDS = 10.0

_GUARDS: dict[Path, "_DirectoryGuard"] = {}
_GUARDS_LOCK = threading.Lock()


class _DirectoryGuard:
    """Serializes access to one data directory across threads and processes."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir
        self._thread_lock = threading.RLock()
        self._file_lock = FileLock(str(base_dir / ".reservations.lock"), timeout=LOCK_TIMEOUT_SECONDS)

    def __enter__(self) -> "_DirectoryGuard":
        self._thread_lock.acquire()
        try:
            self._file_lock.acquire()
        except Timeout as error:
            self._thread_lock.release()
            raise StorageError(f"Timed out waiting for the lock on {self.base_dir}") from error
        except BaseException:
            self._thread_lock.release()
            raise
        return self

    def __exit__(self, *exc_info: object) -> None:
        try:
            self._file_lock.release()
        finally:
            self._thread_lock.release()


def _guard_for(base_dir: Path) -> _DirectoryGuard:
    key = base_dir.resolve()
    with _GUARDS_LOCK:
        guard = _GUARDS.get(key)
        if guard is None:
            guard = _DirectoryGuard(key)
            _GUARDS[key] = guard
        return guard


class ReservationYamlRepository:
    """
    Durable reservation storage backed by YAML files.

    Every write is a read-check-write transaction run under a lock shared by
    all repositories (and processes) on the same data directory, and is
    committed with an atomic file replace. Two callers racing for
    overlapping intervals on the same court can never both commit.
    Failed storage access is retried a bounded number of times.
    """

    def __init__(
        self,
        base_dir: str | Path = "data",
        max_storage_retries: int = 3,
        retry_backoff_seconds: float = 0.05,
        sleep: Callable[[float], None] = time_module.sleep,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self.max_storage_retries = max_storage_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep
        self._ensure_files()

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self._lock = _guard_for(self.base_dir)
            with self._lock:
                for path in (self.reservations_file, self.log_file):
                    if not path.exists():
                        path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise StorageError(f"Failed to initialise data directory: {self.base_dir}") from error

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            if path == self.log_file:
                self._recover_corrupted_yaml(path, error)
                return []
            raise StorageError(f"Failed to read YAML file: {path}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            if path == self.log_file:
                self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
                return []
            raise StorageError(f"Top-level YAML is not a list: {path}")

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise StorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted file %s", path)

        path.write_text("[]\n", encoding="utf-8")
        logger.warning("Recovered corrupted YAML file %s (%s)", path.name, error)
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        try:
            with self._lock:
                events = self._read_yaml_list(self.log_file)
                events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
                self._write_yaml_list(self.log_file, events)
        except StorageError:
            # the reservation change is already committed at this point
            logger.exception("Failed to append %s to the event log", event_type)

    def _load_records(self) -> list[Reservation]:
        rows = self._read_yaml_list(self.reservations_file)
        try:
            return [Reservation.from_dict(row) for row in rows]
        except (KeyError, TypeError, ValueError) as error:
            raise StorageError(f"Malformed reservation row in {self.reservations_file}") from error

    def _save_records(self, records: list[Reservation]) -> None:
        self._write_yaml_list(self.reservations_file, [record.to_dict() for record in records])

    def _with_retry(self, operation: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return operation()
            except StorageError as error:
                attempt += 1
                if attempt > self.max_storage_retries:
                    raise
                logger.warning(
                    "Storage failure (%s); retrying %d/%d",
                    error,
                    attempt,
                    self.max_storage_retries,
                )
                self._sleep(self.retry_backoff_seconds * attempt)

    def _transact(self, mutate: Callable[[list[Reservation]], T]) -> T:
        """Run ``mutate`` on a fresh snapshot and persist it, all under the lock.

        Any exception from ``mutate`` aborts the transaction without writing,
        and a mutation that leaves the records unchanged writes nothing.
        """

        def attempt() -> T:
            with self._lock:
                records = self._load_records()
                before = list(records)
                result = mutate(records)
                if records != before:
                    self._save_records(records)
                return result

        return self._with_retry(attempt)

    def _snapshot(self) -> list[Reservation]:
        def read() -> list[Reservation]:
            with self._lock:
                return self._load_records()

        return self._with_retry(read)

    def get_reservations(self) -> list[Reservation]:
        return self._snapshot()

    def get_reservation(self, reservation_id: str) -> Reservation:
        for record in self._snapshot():
            if record.reservation_id == reservation_id:
                return record
        raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")

    def reservations_for(self, court_id: str, target_date: date) -> list[Reservation]:
        records = [record for record in self._snapshot() if record.court_id == court_id and record.date == target_date]
        records.sort(key=lambda record: (record.start, record.reservation_id))
        return records

    def list_reservations(self, filters: ReservationFilters | None = None) -> list[Reservation]:
        active_filters = filters or ReservationFilters()
        records = [record for record in self._snapshot() if active_filters.matches(record)]
        records.sort(key=lambda record: (record.date, record.start, record.court_id))
        return records

    def find_by_tracking_token(self, tracking_token: str) -> Reservation:
        for record in self._snapshot():
            if tracking_token and record.tracking_token == tracking_token:
                return record
        raise ReservationNotFoundError("No reservation matches this tracking token.")

    def list_by_access_token(self, access_token: str) -> list[Reservation]:
        if not access_token:
            return []
        records = [record for record in self._snapshot() if record.access_token == access_token]
        records.sort(key=lambda record: (record.date, record.start))
        return records

    def reserve(
        self,
        court_id: str,
        target_date: date,
        start: time,
        end: time,
        renter: RenterInfo,
        price_cents: int,
        now: datetime | None = None,
        *,
        tracking_token: str | None = None,
        access_token: str | None = None,
        booking_source: str = BOOKING_SOURCE_OPERATOR,
        notes: str | None = None,
    ) -> Reservation:
        """Insert a reservation only if nothing live overlaps it at commit time.

        Raises:
            ConflictError: carrying the reservations currently in the way
        """
        validate_interval(start, end)
        effective_now = now or datetime.now()

        def insert(records: list[Reservation]) -> Reservation:
            conflicts = find_conflicts(
                target_date,
                start,
                end,
                [record for record in records if record.court_id == court_id],
            )
            if conflicts:
                raise ConflictError("Reservation overlaps with an existing active reservation.", conflicts)

            record = Reservation(
                reservation_id=str(uuid4()),
                court_id=court_id,
                renter=renter,
                date=target_date,
                start=start,
                end=end,
                price_cents=price_cents,
                status=ReservationStatus.SCHEDULED,
                payment_status=PaymentStatus.PENDING,
                created_at=effective_now,
                updated_at=effective_now,
                tracking_token=tracking_token,
                access_token=access_token,
                booking_source=booking_source,
                notes=notes,
            )
            records.append(record)
            return record

        try:
            created = self._transact(insert)
        except ConflictError as error:
            self._log_event(
                "RESERVATION_CONFLICT",
                {
                    "court_id": court_id,
                    "date": target_date.isoformat(),
                    "start": format_time(start),
                    "end": format_time(end),
                    "conflicting_ids": [conflict.reservation_id for conflict in error.conflicts],
                },
                effective_now,
            )
            raise

        self._log_event("RESERVATION_CREATED", _event_payload(created), effective_now)
        logger.info("Reservation %s created for court %s", created.reservation_id, court_id)
        return created

    def confirm(self, reservation_id: str, now: datetime | None = None) -> Reservation:
        effective_now = now or datetime.now()

        def mark_confirmed(records: list[Reservation]) -> tuple[Reservation, bool]:
            index, current = _locate(records, reservation_id)
            if current.status == ReservationStatus.CONFIRMED:
                return current, False
            if current.status != ReservationStatus.SCHEDULED:
                raise ReservationStateError(f"Cannot confirm a {current.status.value} reservation.")
            updated = replace(current, status=ReservationStatus.CONFIRMED, updated_at=effective_now)
            records[index] = updated
            return updated, True

        confirmed, changed = self._transact(mark_confirmed)
        if changed:
            self._log_event("RESERVATION_CONFIRMED", _event_payload(confirmed), effective_now)
        return confirmed

    def cancel(
        self,
        reservation_id: str,
        now: datetime | None = None,
        fee_policy: FeePolicy | None = None,
    ) -> tuple[Reservation, CancellationOutcome]:
        """Mark a reservation cancelled; the row is kept for history.

        ``fee_policy`` is evaluated inside the transaction against the stored
        reservation. Cancelling twice returns the first outcome unchanged.
        """
        effective_now = now or datetime.now()

        def mark_cancelled(records: list[Reservation]) -> tuple[Reservation, CancellationOutcome, bool]:
            index, current = _locate(records, reservation_id)
            if current.status == ReservationStatus.CANCELLED:
                fee = current.cancellation_fee_cents
                return current, CancellationOutcome(fee_cents=fee, is_free=fee == 0), False
            if current.status == ReservationStatus.COMPLETED:
                raise ReservationStateError("Cannot cancel a completed reservation.")

            outcome = fee_policy(current) if fee_policy is not None else CancellationOutcome(fee_cents=0, is_free=True)
            payment_status = current.payment_status
            if outcome.is_free and payment_status == PaymentStatus.PENDING:
                payment_status = PaymentStatus.CANCELLED

            updated = replace(
                current,
                status=ReservationStatus.CANCELLED,
                payment_status=payment_status,
                cancellation_fee_cents=outcome.fee_cents,
                cancelled_at=effective_now,
                updated_at=effective_now,
            )
            records[index] = updated
            return updated, outcome, True

        cancelled, outcome, changed = self._transact(mark_cancelled)
        if changed:
            payload = _event_payload(cancelled)
            payload["fee_cents"] = outcome.fee_cents
            self._log_event("RESERVATION_CANCELLED", payload, effective_now)
            logger.info("Reservation %s cancelled (fee %d)", reservation_id, outcome.fee_cents)
        return cancelled, outcome

    def reschedule(
        self,
        reservation_id: str,
        new_date: date,
        new_start: time,
        new_end: time,
        now: datetime | None = None,
        price_cents: int | None = None,
    ) -> Reservation:
        """Move a live reservation, checking conflicts against everything but itself."""
        validate_interval(new_start, new_end)
        effective_now = now or datetime.now()

        def move(records: list[Reservation]) -> Reservation:
            index, current = _locate(records, reservation_id)
            if not current.is_live:
                raise ReservationStateError(f"Cannot reschedule a {current.status.value} reservation.")

            conflicts = find_conflicts(
                new_date,
                new_start,
                new_end,
                [record for record in records if record.court_id == current.court_id],
                exclude_reservation_id=current.reservation_id,
            )
            if conflicts:
                raise ConflictError("Updated reservation overlaps with an existing active reservation.", conflicts)

            updated = replace(
                current,
                date=new_date,
                start=new_start,
                end=new_end,
                price_cents=current.price_cents if price_cents is None else price_cents,
                updated_at=effective_now,
            )
            records[index] = updated
            return updated

        moved = self._transact(move)
        self._log_event("RESERVATION_RESCHEDULED", _event_payload(moved), effective_now)
        return moved

    def complete_past(self, now: datetime | None = None) -> int:
        """Move live reservations whose end time has passed to ``completed``."""
        effective_now = now or datetime.now()

        def mark_completed(records: list[Reservation]) -> list[Reservation]:
            completed: list[Reservation] = []
            for index, record in enumerate(records):
                if record.is_live and record.end_at <= effective_now:
                    updated = replace(record, status=ReservationStatus.COMPLETED, updated_at=effective_now)
                    records[index] = updated
                    completed.append(updated)
            return completed

        completed = self._transact(mark_completed)
        for record in completed:
            self._log_event("RESERVATION_COMPLETED", _event_payload(record), effective_now)
        return len(completed)


def _locate(records: list[Reservation], reservation_id: str) -> tuple[int, Reservation]:
    for index, record in enumerate(records):
        if record.reservation_id == reservation_id:
            return index, record
    raise ReservationNotFoundError(f"Reservation not found: {reservation_id}")


def _event_payload(record: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": record.reservation_id,
        "court_id": record.court_id,
        "date": record.date.isoformat(),
        "start": format_time(record.start),
        "end": format_time(record.end),
        "status": record.status.value,
        "renter": record.renter.name,
    }
