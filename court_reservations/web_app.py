from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .config import AppConfig, get_default_config_path
from .engine import ReservationEngine
from .errors import NoOperatingHoursError, StorageError, UnknownCourtError
from .models import (
    AvailabilityReason,
    Court,
    OperationResult,
    PaymentStatus,
    RenterInfo,
    Reservation,
    ReservationFilters,
    ReservationStatus,
    parse_time,
)

_STATUS_BY_CODE = {
    "conflict": 409,
    "not_found": 404,
    "invalid_state": 422,
}


def create_app(
    config: AppConfig | str | Path | None = None,
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    token_factory: Callable[[], str] | None = None,
) -> Flask:
    app = Flask(__name__)
    app_config = config if isinstance(config, AppConfig) else AppConfig.load_from_yaml(Path(config or get_default_config_path()))
    if data_dir is not None:
        app_config = AppConfig(settings=replace(app_config.settings, data_dir=Path(data_dir)), catalog=app_config.catalog)
    engine = ReservationEngine.from_config(app_config, clock=now_provider, token_factory=token_factory)
    app.extensions["reservation_engine"] = engine

    def _serialize_court(court: Court) -> dict[str, Any]:
        payload = court.to_dict()
        payload["operating_hours"] = [rule.to_dict() for rule in engine.catalog.rules_for(court.court_id)]
        return payload

    def _serialize_public_reservation(record: Reservation) -> dict[str, Any]:
        court = engine.catalog.court(record.court_id)
        return {
            "court_name": court.name,
            "renter_name": record.renter.name,
            "date": record.date.isoformat(),
            "start": record.start.isoformat(timespec="minutes"),
            "end": record.end.isoformat(timespec="minutes"),
            "duration_minutes": record.duration_minutes,
            "price_cents": record.price_cents,
            "status": record.status.value,
            "payment_status": record.payment_status.value,
            "cancellation_fee_cents": record.cancellation_fee_cents,
            "cancellation_deadline_hours": court.cancellation_deadline_hours,
            "court_cancellation_fee_cents": court.cancellation_fee_cents,
            "tracking_token": record.tracking_token,
        }

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(ValueError)
    def handle_bad_input(error: ValueError) -> Any:
        return _fail("invalid_request", str(error), 400)

    @app.errorhandler(UnknownCourtError)
    def handle_unknown_court(error: UnknownCourtError) -> Any:
        return _fail(error.code, str(error), 404)

    @app.errorhandler(StorageError)
    def handle_storage_error(error: StorageError) -> Any:
        app.logger.error("Storage failure: %s", error)
        return _fail(error.code, "The reservation service is temporarily unavailable. Please try again.", 503)

    @app.get("/api/courts")
    def list_courts() -> Any:
        return jsonify({"ok": True, "courts": [_serialize_court(court) for court in engine.courts()]})

    @app.get("/api/courts/stats")
    def court_stats() -> Any:
        return jsonify({"ok": True, "courts": [item.to_dict() for item in engine.court_statistics()]})

    @app.get("/api/courts/<court_id>/slots")
    def get_slots(court_id: str) -> Any:
        target_date = _parse_date(request.args.get("date"))
        slots = engine.generate_slots(court_id, target_date)
        return jsonify({"ok": True, "date": target_date.isoformat(), "slots": [slot.to_dict() for slot in slots]})

    @app.get("/api/courts/<court_id>/availability")
    def get_availability(court_id: str) -> Any:
        target_date = _parse_date(request.args.get("date"))
        slots = engine.evaluate_slots(court_id, target_date)
        return jsonify({"ok": True, "date": target_date.isoformat(), "slots": [slot.to_dict() for slot in slots]})

    @app.get("/api/courts/<court_id>/check")
    def check_availability(court_id: str) -> Any:
        report = engine.check_interval(
            court_id,
            _parse_date(request.args.get("date")),
            parse_time(request.args.get("start", "")),
            parse_time(request.args.get("end", "")),
        )
        return jsonify({"ok": True, "report": report.to_dict()})

    @app.get("/api/courts/<court_id>/lanes")
    def get_lanes(court_id: str) -> Any:
        target_date = _parse_date(request.args.get("date"))
        lanes = engine.layout_lanes(court_id, target_date)
        return jsonify(
            {
                "ok": True,
                "date": target_date.isoformat(),
                "lanes": {reservation_id: item.to_dict() for reservation_id, item in lanes.items()},
            }
        )

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        args = request.args
        filters = ReservationFilters(
            court_id=args.get("court_id") or None,
            start_date=_parse_date(args["start_date"]) if args.get("start_date") else None,
            end_date=_parse_date(args["end_date"]) if args.get("end_date") else None,
            status=ReservationStatus(args["status"]) if args.get("status") else None,
            payment_status=PaymentStatus(args["payment_status"]) if args.get("payment_status") else None,
        )
        records = engine.list_reservations(filters)
        return jsonify({"ok": True, "reservations": [record.to_dict() for record in records]})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = request.get_json(silent=True) or {}
        court_id = str(payload.get("court_id", "")).strip()
        if not court_id:
            return _fail("invalid_request", "court_id is required.", 400)

        price = payload.get("price_cents")
        result = engine.reserve(
            court_id,
            _parse_date(payload.get("date")),
            parse_time(payload.get("start", "")),
            parse_time(payload.get("end", "")),
            RenterInfo.from_dict(dict(payload.get("renter") or {})),
            price_cents=int(price) if price is not None else None,
            notes=payload.get("notes"),
        )
        return _respond(result, lambda record: {"reservation": record.to_dict()}, created=True)

    @app.get("/api/reservations/<reservation_id>")
    def get_reservation(reservation_id: str) -> Any:
        return _respond(engine.get_reservation(reservation_id), lambda record: {"reservation": record.to_dict()})

    @app.post("/api/reservations/<reservation_id>/confirm")
    def confirm_reservation(reservation_id: str) -> Any:
        return _respond(engine.confirm(reservation_id), lambda record: {"reservation": record.to_dict()})

    @app.post("/api/reservations/<reservation_id>/cancel")
    def cancel_reservation(reservation_id: str) -> Any:
        return _respond(engine.cancel(reservation_id), lambda receipt: receipt.to_dict())

    @app.post("/api/reservations/<reservation_id>/reschedule")
    def reschedule_reservation(reservation_id: str) -> Any:
        payload = request.get_json(silent=True) or {}
        result = engine.reschedule(
            reservation_id,
            _parse_date(payload.get("date")),
            parse_time(payload.get("start", "")),
            parse_time(payload.get("end", "")),
        )
        return _respond(result, lambda record: {"reservation": record.to_dict()})

    @app.get("/api/public/courts")
    def list_public_courts() -> Any:
        courts = [court for court in engine.courts() if _public_refusal(court) is None]
        return jsonify({"ok": True, "courts": [_serialize_court(court) for court in courts]})

    @app.get("/api/public/courts/<court_id>/availability")
    def public_availability(court_id: str) -> Any:
        target_date = _parse_date(request.args.get("date"))
        court = engine.catalog.court(court_id)
        refusal = _public_refusal(court)
        if refusal is not None:
            return _fail(refusal.value, refusal.message, 422)

        try:
            engine.require_slots(court_id, target_date)
        except NoOperatingHoursError as error:
            return jsonify({"ok": True, "date": target_date.isoformat(), "slots": [], "message": str(error)})

        slots = engine.evaluate_slots(court_id, target_date)
        return jsonify({"ok": True, "date": target_date.isoformat(), "slots": [slot.to_dict() for slot in slots]})

    @app.post("/api/public/courts/<court_id>/reserve")
    def public_reserve(court_id: str) -> Any:
        payload = request.get_json(silent=True) or {}
        renter = RenterInfo.guest(
            name=str(payload.get("name", "")).strip(),
            phone=str(payload.get("phone", "")).strip(),
            email=(str(payload["email"]).strip() or None) if payload.get("email") else None,
            tax_id=(str(payload["tax_id"]).strip() or None) if payload.get("tax_id") else None,
        )
        result = engine.reserve(
            court_id,
            _parse_date(payload.get("date")),
            parse_time(payload.get("start_time", "")),
            parse_time(payload.get("end_time", "")),
            renter,
            public=True,
            access_token=(str(payload["access_token"]) if payload.get("access_token") else None),
        )
        return _respond(
            result,
            lambda record: {
                "reservation": _serialize_public_reservation(record),
                "access_token": record.access_token,
            },
            created=True,
        )

    @app.get("/api/public/rentals/<tracking_token>")
    def public_rental_status(tracking_token: str) -> Any:
        return _respond(
            engine.find_by_tracking_token(tracking_token),
            lambda record: {"reservation": _serialize_public_reservation(record)},
        )

    @app.get("/api/public/renters/<access_token>/rentals")
    def public_renter_rentals(access_token: str) -> Any:
        records = engine.list_by_access_token(access_token)
        return jsonify({"ok": True, "reservations": [_serialize_public_reservation(record) for record in records]})

    @app.post("/api/public/rentals/<tracking_token>/cancel")
    def public_cancel(tracking_token: str) -> Any:
        return _respond(
            engine.cancel_by_token(tracking_token),
            lambda receipt: {
                "reservation": _serialize_public_reservation(receipt.reservation),
                **receipt.outcome.to_dict(),
            },
        )

    @app.post("/api/public/rentals/<tracking_token>/reschedule")
    def public_reschedule(tracking_token: str) -> Any:
        payload = request.get_json(silent=True) or {}
        result = engine.reschedule_by_token(
            tracking_token,
            _parse_date(payload.get("new_date")),
            parse_time(payload.get("new_start_time", "")),
            parse_time(payload.get("new_end_time", "")),
        )
        return _respond(result, lambda record: {"reservation": _serialize_public_reservation(record)})

    return app


def _public_refusal(court: Court) -> AvailabilityReason | None:
    if not court.is_bookable:
        return AvailabilityReason.COURT_UNAVAILABLE
    if not court.allow_public_booking:
        return AvailabilityReason.PUBLIC_BOOKING_DISABLED
    return None


def _parse_date(value: Any) -> date:
    if not value:
        raise ValueError("date is required (YYYY-MM-DD).")
    try:
        return date.fromisoformat(str(value))
    except ValueError as error:
        raise ValueError(f"Invalid date: {value!r}") from error


def _fail(code: str, message: str, status: int, conflicts: list[dict[str, str]] | None = None) -> Any:
    body: dict[str, Any] = {"ok": False, "error": code, "message": message}
    if conflicts:
        body["conflicts"] = conflicts
    return jsonify(body), status


def _respond(result: OperationResult[Any], serialize: Callable[[Any], dict[str, Any]], created: bool = False) -> Any:
    if result.ok:
        return jsonify({"ok": True, **serialize(result.value)}), (201 if created else 200)

    code = result.error_code or "error"
    return _fail(
        code,
        result.message or code,
        _STATUS_BY_CODE.get(code, 422),
        [conflict.to_dict() for conflict in result.conflicts],
    )


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
