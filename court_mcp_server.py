from __future__ import annotations

from datetime import date, time
from typing import Any

from mcp.server.fastmcp import FastMCP

from court_reservations import AppConfig, RenterInfo, ReservationEngine, get_default_config_path

mcp = FastMCP(
    "Court Reservation MCP Server",
    instructions="Expose court slots, availability checks and bookings from the court_reservations engine.",
    json_response=True,
)

ENGINE = ReservationEngine.from_config(AppConfig.load_from_yaml(get_default_config_path()))


@mcp.resource("reservation://courts")
async def list_courts() -> list[dict[str, Any]]:
    """List configured courts."""
    return [court.to_dict() for court in ENGINE.courts()]


@mcp.tool()
def generate_slots(court_id: str, date_iso: str) -> list[dict[str, Any]]:
    """Return the candidate slots for a court on a date (YYYY-MM-DD)."""
    return [slot.to_dict() for slot in ENGINE.generate_slots(court_id, date.fromisoformat(date_iso))]


@mcp.tool()
def evaluate_slots(court_id: str, date_iso: str) -> list[dict[str, Any]]:
    """Return the slots for a court on a date, each marked available or not."""
    return [slot.to_dict() for slot in ENGINE.evaluate_slots(court_id, date.fromisoformat(date_iso))]


@mcp.tool()
def check_interval(court_id: str, date_iso: str, start: str, end: str) -> dict[str, Any]:
    """Check whether an HH:MM-HH:MM interval can be booked and list any conflicts."""
    report = ENGINE.check_interval(court_id, date.fromisoformat(date_iso), time.fromisoformat(start), time.fromisoformat(end))
    return report.to_dict()


@mcp.tool()
def reserve(court_id: str, date_iso: str, start: str, end: str, renter_name: str, renter_phone: str) -> dict[str, Any]:
    """Book an interval for a guest renter."""
    result = ENGINE.reserve(
        court_id,
        date.fromisoformat(date_iso),
        time.fromisoformat(start),
        time.fromisoformat(end),
        RenterInfo.guest(renter_name, renter_phone),
    )
    if result.ok and result.value is not None:
        return {"ok": True, "reservation": result.value.to_dict()}
    return {
        "ok": False,
        "error": result.error_code,
        "message": result.message,
        "conflicts": [conflict.to_dict() for conflict in result.conflicts],
    }


@mcp.tool()
def cancel(reservation_id: str) -> dict[str, Any]:
    """Cancel a reservation and report the cancellation fee."""
    result = ENGINE.cancel(reservation_id)
    if result.ok and result.value is not None:
        return {"ok": True, **result.value.to_dict()}
    return {"ok": False, "error": result.error_code, "message": result.message}


@mcp.tool()
def layout_lanes(court_id: str, date_iso: str) -> dict[str, dict[str, int]]:
    """Return calendar lanes (lane index and lane count) per reservation id."""
    lanes = ENGINE.layout_lanes(court_id, date.fromisoformat(date_iso))
    return {reservation_id: item.to_dict() for reservation_id, item in lanes.items()}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
