from datetime import date, datetime, timezone

import pytest

from app.services.week_helpers import get_week_bounds, get_week_id, to_date


def test_wednesday_resolves_to_monday_through_sunday():
    bounds = get_week_bounds(date(2024, 1, 10))
    assert bounds.week_start == date(2024, 1, 8)
    assert bounds.week_end == date(2024, 1, 14)


def test_monday_is_its_own_week_start():
    bounds = get_week_bounds(date(2024, 1, 8))
    assert bounds == (date(2024, 1, 8), date(2024, 1, 14))


def test_sunday_belongs_to_the_week_that_started_before_it():
    bounds = get_week_bounds(date(2024, 1, 14))
    assert bounds.week_start == date(2024, 1, 8)
    assert bounds.week_end == date(2024, 1, 14)


def test_week_crossing_year_boundary():
    bounds = get_week_bounds("2025-01-01")
    assert bounds.week_start == date(2024, 12, 30)
    assert bounds.week_end == date(2025, 1, 5)


def test_accepts_iso_strings_and_datetimes():
    assert get_week_id("2024-01-10") == "2024-01-08"
    assert get_week_id("2024-01-10T23:15:00Z") == "2024-01-08"
    assert get_week_id(datetime(2024, 1, 14, 12, 0, tzinfo=timezone.utc)) == "2024-01-08"


def test_week_id_is_monday_iso_date():
    assert get_week_id(date(2024, 1, 10)) == "2024-01-08"


def test_unparseable_string_propagates():
    with pytest.raises(ValueError):
        to_date("not-a-date")


def test_unsupported_type_raises():
    with pytest.raises(TypeError):
        to_date(20240110)
