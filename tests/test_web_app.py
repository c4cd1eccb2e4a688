import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from court_reservations import AppConfig
from court_reservations.web_app import create_app

CATALOG = {
    "courts": [
        {
            "court_id": "c1",
            "name": "Court 1",
            "default_price_cents": 8000,
            "cancellation_fee_cents": 2000,
            "operating_hours": [
                {"day_of_week": 0, "open_time": "08:00", "close_time": "10:00", "slot_duration_minutes": 60},
            ],
        },
        {
            "court_id": "c2",
            "name": "Court 2",
            "allow_public_booking": False,
            "operating_hours": [
                {"day_of_week": 0, "open_time": "08:00", "close_time": "10:00", "slot_duration_minutes": 60},
            ],
        },
    ]
}


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.now = datetime(2026, 2, 27, 12, 0)
        app = create_app(
            AppConfig.from_dict(CATALOG),
            data_dir=Path(self._temp_dir.name) / "data",
            now_provider=lambda: self.now,
        )
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _book(self, start: str = "08:00", end: str = "09:00", name: str = "Ana"):
        return self.client.post(
            "/api/reservations",
            json={
                "court_id": "c1",
                "date": "2026-03-02",
                "start": start,
                "end": end,
                "renter": {"name": name, "phone": "+55 11 96666-0000"},
            },
        )

    def test_list_courts_includes_operating_hours(self) -> None:
        response = self.client.get("/api/courts")

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual([court["court_id"] for court in payload["courts"]], ["c1", "c2"])
        self.assertEqual(payload["courts"][0]["operating_hours"][0]["open_time"], "08:00")

    def test_reserve_then_availability_and_conflict(self) -> None:
        created = self._book()
        self.assertEqual(created.status_code, 201)
        reservation = created.get_json()["reservation"]
        self.assertEqual(reservation["status"], "scheduled")
        self.assertEqual(reservation["price_cents"], 8000)

        availability = self.client.get("/api/courts/c1/availability?date=2026-03-02").get_json()
        self.assertEqual([slot["is_available"] for slot in availability["slots"]], [False, True])

        conflict = self._book(name="Bruno")
        self.assertEqual(conflict.status_code, 409)
        body = conflict.get_json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["error"], "conflict")
        self.assertEqual(body["conflicts"][0]["reservation_id"], reservation["reservation_id"])

    def test_check_interval_endpoint(self) -> None:
        self._book()

        report = self.client.get("/api/courts/c1/check?date=2026-03-02&start=08:30&end=09:30").get_json()["report"]

        self.assertFalse(report["available"])
        self.assertEqual(report["reasons"][0]["code"], "conflict")
        self.assertEqual(len(report["conflicts"]), 1)

    def test_cancel_and_reschedule(self) -> None:
        reservation_id = self._book().get_json()["reservation"]["reservation_id"]

        moved = self.client.post(
            f"/api/reservations/{reservation_id}/reschedule",
            json={"date": "2026-03-02", "start": "09:00", "end": "10:00"},
        )
        self.assertEqual(moved.status_code, 200)
        self.assertEqual(moved.get_json()["reservation"]["start"], "09:00")

        cancelled = self.client.post(f"/api/reservations/{reservation_id}/cancel").get_json()
        self.assertTrue(cancelled["is_free"])
        self.assertEqual(cancelled["reservation"]["status"], "cancelled")

        again = self.client.post(
            f"/api/reservations/{reservation_id}/reschedule",
            json={"date": "2026-03-02", "start": "08:00", "end": "09:00"},
        )
        self.assertEqual(again.status_code, 422)
        self.assertEqual(again.get_json()["error"], "invalid_state")

    def test_lanes_endpoint(self) -> None:
        reservation_id = self._book().get_json()["reservation"]["reservation_id"]

        lanes = self.client.get("/api/courts/c1/lanes?date=2026-03-02").get_json()["lanes"]

        self.assertEqual(lanes[reservation_id], {"lane": 0, "total_lanes": 1})

    def test_bad_input_is_400_and_unknown_court_is_404(self) -> None:
        self.assertEqual(self.client.get("/api/courts/c1/slots").status_code, 400)
        self.assertEqual(self._book(start="10:00", end="09:00").status_code, 400)
        self.assertEqual(self.client.get("/api/courts/zz/slots?date=2026-03-02").status_code, 404)
        self.assertEqual(self.client.get("/api/reservations/missing").status_code, 404)

    def test_public_flow(self) -> None:
        closed_day = self.client.get("/api/public/courts/c1/availability?date=2026-03-03").get_json()
        self.assertTrue(closed_day["ok"])
        self.assertEqual(closed_day["slots"], [])
        self.assertIn("message", closed_day)

        booked = self.client.post(
            "/api/public/courts/c1/reserve",
            json={"name": "Ana", "phone": "+55 11 95555-0000", "date": "2026-03-02", "start_time": "08:00", "end_time": "09:00"},
        )
        self.assertEqual(booked.status_code, 201)
        body = booked.get_json()
        tracking_token = body["reservation"]["tracking_token"]
        access_token = body["access_token"]

        status = self.client.get(f"/api/public/rentals/{tracking_token}").get_json()
        self.assertEqual(status["reservation"]["court_name"], "Court 1")

        mine = self.client.get(f"/api/public/renters/{access_token}/rentals").get_json()
        self.assertEqual(len(mine["reservations"]), 1)

        self.now = datetime(2026, 3, 1, 20, 0)
        cancelled = self.client.post(f"/api/public/rentals/{tracking_token}/cancel").get_json()
        self.assertFalse(cancelled["is_free"])
        self.assertEqual(cancelled["fee_cents"], 2000)

    def test_public_booking_disabled_court(self) -> None:
        refused = self.client.post(
            "/api/public/courts/c2/reserve",
            json={"name": "Ana", "phone": "123", "date": "2026-03-02", "start_time": "08:00", "end_time": "09:00"},
        )

        self.assertEqual(refused.status_code, 422)
        self.assertEqual(refused.get_json()["error"], "public_booking_disabled")
        public_ids = [court["court_id"] for court in self.client.get("/api/public/courts").get_json()["courts"]]
        self.assertEqual(public_ids, ["c1"])

    def test_public_availability_refuses_private_court(self) -> None:
        refused = self.client.get("/api/public/courts/c2/availability?date=2026-03-02")

        self.assertEqual(refused.status_code, 422)
        payload = refused.get_json()
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["error"], "public_booking_disabled")
        self.assertNotIn("slots", payload)

        allowed = self.client.get("/api/public/courts/c1/availability?date=2026-03-02").get_json()
        self.assertEqual(len(allowed["slots"]), 2)

    def test_public_availability_refuses_court_under_maintenance(self) -> None:
        catalog = {
            "courts": [
                {
                    "court_id": "c3",
                    "name": "Court 3",
                    "status": "maintenance",
                    "operating_hours": [
                        {"day_of_week": 0, "open_time": "08:00", "close_time": "10:00", "slot_duration_minutes": 60},
                    ],
                },
            ]
        }
        app = create_app(AppConfig.from_dict(catalog), data_dir=Path(self._temp_dir.name) / "c3", now_provider=lambda: self.now)

        refused = app.test_client().get("/api/public/courts/c3/availability?date=2026-03-02")

        self.assertEqual(refused.status_code, 422)
        self.assertEqual(refused.get_json()["error"], "court_unavailable")

    def test_list_reservations_with_filters(self) -> None:
        self._book()
        self._book(start="09:00", end="10:00")

        listed = self.client.get("/api/reservations?court_id=c1&status=scheduled").get_json()
        self.assertEqual(len(listed["reservations"]), 2)
        self.assertEqual(self.client.get("/api/reservations?status=bogus").status_code, 400)

        stats = self.client.get("/api/courts/stats").get_json()["courts"]
        self.assertEqual(stats[0]["total_revenue_cents"], 16000)


if __name__ == "__main__":
    unittest.main()
