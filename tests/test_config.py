import tempfile
import unittest
from datetime import time
from pathlib import Path

from court_reservations import AppConfig, CourtCatalog, CourtStatus, UnknownCourtError

CONFIG_YAML = """
settings:
  data_dir: /tmp/court-data
  max_storage_retries: 5
  holiday_country: BR

courts:
  - court_id: c1
    name: Court 1
    default_price_cents: 8000
    cancellation_fee_cents: 1500
    operating_hours:
      - {day_of_week: 0, open_time: "08:00", close_time: "22:00", slot_duration_minutes: 60}
      - {day_of_week: 5, open_time: "07:00", close_time: "18:00", slot_duration_minutes: 90, price_cents: 12000}
  - court_id: c2
    name: Court 2
    status: maintenance
"""


class TestAppConfig(unittest.TestCase):
    def test_load_from_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "courts.yaml"
            path.write_text(CONFIG_YAML, encoding="utf-8")

            config = AppConfig.load_from_yaml(path, environ={})

        self.assertEqual(config.settings.data_dir, Path("/tmp/court-data"))
        self.assertEqual(config.settings.max_storage_retries, 5)
        self.assertEqual(config.settings.holiday_country, "BR")

        court = config.catalog.court("c1")
        self.assertEqual(court.cancellation_fee_cents, 1500)
        self.assertEqual(court.cancellation_deadline_hours, 24)
        self.assertEqual(config.catalog.court("c2").status, CourtStatus.MAINTENANCE)

        rules = config.catalog.rules_for("c1")
        self.assertEqual(len(rules), 2)
        self.assertEqual(rules[1].open_time, time(7, 0))
        self.assertEqual(rules[1].price_cents, 12000)
        self.assertEqual(config.catalog.rules_for("c2"), [])

    def test_environment_overrides_file_values(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "courts.yaml"
            path.write_text(CONFIG_YAML, encoding="utf-8")

            config = AppConfig.load_from_yaml(
                path,
                environ={
                    "COURT_RESERVATIONS_DATA_DIR": temp_dir,
                    "COURT_RESERVATIONS_MAX_STORAGE_RETRIES": "1",
                },
            )

        self.assertEqual(config.settings.data_dir, Path(temp_dir))
        self.assertEqual(config.settings.max_storage_retries, 1)

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            AppConfig.load_from_yaml(Path("/nonexistent/courts.yaml"))

    def test_invalid_rules_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CourtCatalog.from_dict(
                {"courts": [{"court_id": "c1", "operating_hours": [{"day_of_week": 7, "open_time": "08:00", "close_time": "09:00"}]}]}
            )
        with self.assertRaises(ValueError):
            CourtCatalog.from_dict(
                {"courts": [{"court_id": "c1", "operating_hours": [{"day_of_week": 1, "open_time": "10:00", "close_time": "09:00"}]}]}
            )
        with self.assertRaises(ValueError):
            CourtCatalog.from_dict({"courts": [{"court_id": "c1"}, {"court_id": "c1"}]})

    def test_unknown_court(self) -> None:
        with self.assertRaises(UnknownCourtError):
            CourtCatalog().court("missing")


if __name__ == "__main__":
    unittest.main()
