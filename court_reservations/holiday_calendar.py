from __future__ import annotations

from datetime import date

import holidays as pyholidays


class HolidayCalendar:
    """Public holidays for one country (optionally one subdivision), cached per year."""

    def __init__(self, country: str, subdivision: str | None = None) -> None:
        self.country = country
        self.subdivision = subdivision
        self._cache: dict[int, set[date]] = {}

    def is_holiday(self, target_date: date) -> bool:
        year = target_date.year
        if year not in self._cache:
            holiday_map = pyholidays.country_holidays(self.country, subdiv=self.subdivision, years=[year])
            self._cache[year] = set(holiday_map.keys())
        return target_date in self._cache[year]
