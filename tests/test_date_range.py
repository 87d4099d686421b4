"""Tests for date windows and view selectors."""

from __future__ import annotations

from datetime import date

import pytest

from streaky.domain.selectors import ViewSelector
from streaky.errors import InvalidRange
from streaky.services.date_range import DateWindow, contains, normalize


class TestNormalize:
    def test_valid_window(self):
        assert normalize("2024-01-01", "2024-01-10") == DateWindow("2024-01-01", "2024-01-10")

    def test_date_objects_are_converted(self):
        window = normalize(date(2024, 1, 1), date(2024, 1, 10))
        assert window.start == "2024-01-01"
        assert window.end == "2024-01-10"

    def test_single_day_window(self):
        assert normalize("2024-01-01", "2024-01-01").start == "2024-01-01"

    def test_idempotent(self):
        window = normalize("2024-01-01", "2024-01-31")
        assert normalize(*window) == window

    @pytest.mark.parametrize(
        "start,end",
        [
            ("2024-04-31", "2024-05-02"),  # April has 30 days
            ("2023-02-29", "2023-03-01"),  # not a leap year
            ("2024-01-10", "2024-01-01"),  # reversed
            ("2024-1-1", "2024-01-10"),  # not zero-padded
            ("2024-01-01T00:00:00", "2024-01-10"),
            ("", "2024-01-10"),
            (None, "2024-01-10"),
        ],
    )
    def test_rejects_bad_windows(self, start, end):
        with pytest.raises(InvalidRange):
            normalize(start, end)


class TestContains:
    def test_reflexive_at_both_bounds(self):
        window = normalize("2024-01-01", "2024-01-10")
        assert contains(window, "2024-01-01")
        assert contains(window, "2024-01-10")

    def test_inside_and_outside(self):
        window = normalize("2024-01-01", "2024-01-10")
        assert contains(window, "2024-01-05")
        assert not contains(window, "2023-12-31")
        assert not contains(window, "2024-01-11")

    def test_across_month_boundary(self):
        window = normalize("2024-01-28", "2024-02-03")
        assert contains(window, "2024-02-01")
        assert not contains(window, "2024-02-10")


class TestViewSelector:
    def test_needs_exactly_one_scope(self):
        with pytest.raises(ValueError):
            ViewSelector()
        with pytest.raises(ValueError):
            ViewSelector(habit_id="h", user_id=1)

    def test_cannot_be_windowed_and_today_only(self):
        with pytest.raises(ValueError):
            ViewSelector(habit_id="h", window=normalize("2024-01-01", "2024-01-02"), today_only=True)

    def test_range_constructors_validate(self):
        with pytest.raises(InvalidRange):
            ViewSelector.habit_range("h", "2024-01-10", "2024-01-01")

    def test_selectors_are_hashable_keys(self):
        a = ViewSelector.habit_range("h", "2024-01-01", "2024-01-10")
        b = ViewSelector.habit_range("h", date(2024, 1, 1), date(2024, 1, 10))
        assert a == b
        assert len({a, b, ViewSelector.for_habit("h")}) == 2

    def test_matches_habit_views(self):
        today = "2024-03-15"
        assert ViewSelector.for_habit("h").matches("h", 1, "2020-01-01", today)
        assert not ViewSelector.for_habit("h").matches("x", 1, today, today)
        assert ViewSelector.habit_today("h").matches("h", 1, today, today)
        assert not ViewSelector.habit_today("h").matches("h", 1, "2024-03-14", today)

    def test_matches_user_views(self):
        today = "2024-03-15"
        assert ViewSelector.for_user(1).matches("h", 1, "2024-03-01", today)
        assert not ViewSelector.for_user(1).matches("h", 2, "2024-03-01", today)
        assert not ViewSelector.for_user(1).matches("h", None, "2024-03-01", today)
        ranged = ViewSelector.user_range(1, "2024-03-01", "2024-03-10")
        assert ranged.matches("h", 1, "2024-03-10", today)
        assert not ranged.matches("h", 1, "2024-03-11", today)
        assert ViewSelector.user_today(1).matches("h", 1, today, today)
