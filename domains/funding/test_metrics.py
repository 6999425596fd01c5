# domains/funding/test_metrics.py
# Unit tests for derived funding metrics

from datetime import date, datetime, timezone

import pytest

from domains.funding.metrics import (
    days_left,
    filter_projects,
    funding_series,
    is_completed,
    parse_date,
    parse_timestamp,
    percent_label,
    pledge_limit_error,
    progress_width,
    summarize,
)
from domains.funding.models.project import ProjectCreate, SortOption, parse_sort

TODAY = date(2026, 10, 19)


def test_partially_funded_project():
    s = summarize({"goal_amount": 1000, "current_amount": 400, "end_date": "2026-11-01"}, today=TODAY)
    assert s.percent_label == 40
    assert s.progress_width == 40.0
    assert s.completed is False
    assert s.remaining == 600.0


def test_fully_funded_project():
    s = summarize({"goal_amount": 1000, "current_amount": 1000, "end_date": "2026-11-01"}, today=TODAY)
    assert s.completed is True
    assert s.progress_width == 100.0
    assert s.remaining == 0.0


def test_overfunded_label_is_unclamped_but_bar_is_clamped():
    assert percent_label(1500, 1000) == 150
    assert progress_width(1500, 1000) == 100.0


def test_percent_label_rounds_half_up():
    assert percent_label(125, 1000) == 13
    assert percent_label(124, 1000) == 12


def test_zero_goal_reads_as_zero_percent():
    assert progress_width(50, 0) == 0.0


@pytest.mark.parametrize("current,goal,expected", [
    (999.99, 1000, False),
    (1000, 1000, True),
    (1000.01, 1000, True),
])
def test_completed_iff_current_reaches_goal(current, goal, expected):
    assert is_completed(current, goal) is expected


def test_days_left_counts_calendar_days():
    assert days_left("2026-10-29", today=TODAY) == 10
    assert days_left("2026-10-19T23:59:00Z", today=TODAY) == 0


def test_days_left_never_negative():
    assert days_left("2026-01-01", today=TODAY) == 0


def test_pledge_over_remaining_is_refused():
    assert pledge_limit_error(601, 400, 1000) == "The maximum pledge amount available is $600.00"
    assert pledge_limit_error(600, 400, 1000) is None


def test_pledge_must_be_positive():
    assert pledge_limit_error(0, 400, 1000) is not None
    assert pledge_limit_error(float("nan"), 400, 1000) is not None


def test_funding_series_is_cumulative_and_keeps_same_day_points():
    pledges = [
        {"amount": 50, "created_at": "2026-10-03T15:00:00Z"},
        {"amount": 100, "created_at": "2026-10-03T09:00:00Z"},
        {"amount": 25.5, "created_at": "2026-10-05T12:00:00+00:00"},
    ]
    series = funding_series(pledges)
    assert [p["date"] for p in series] == ["Oct 3", "Oct 3", "Oct 5"]
    assert [p["total"] for p in series] == [100, 150, 175.5]


def test_funding_series_orders_mixed_fraction_widths():
    pledges = [
        {"amount": 10, "created_at": "2026-10-19T14:26:08.123456+00:00"},
        {"amount": 20, "created_at": "2026-10-19T14:26:08.0261+00:00"},
        {"amount": 30, "created_at": "2026-10-18T23:59:59.5Z"},
        {"amount": 40, "created_at": "2026-10-19T14:26:09"},
    ]
    series = funding_series(pledges)
    assert [p["total"] for p in series] == [30, 50, 60, 100]
    assert [p["date"] for p in series] == ["Oct 18", "Oct 19", "Oct 19", "Oct 19"]


def test_parse_timestamp_pads_fraction_and_assumes_utc():
    ts = parse_timestamp("2026-10-19T14:26:08.0261+00:00")
    assert ts == datetime(2026, 10, 19, 14, 26, 8, 26100, tzinfo=timezone.utc)
    assert parse_timestamp("2026-10-19T14:26:08.1234567Z").microsecond == 123456
    assert parse_timestamp("2026-10-19").tzinfo is timezone.utc
    assert parse_date("2026-10-19T23:30:00.02+00:00") == date(2026, 10, 19)


def test_funding_series_empty():
    assert funding_series([]) == []


def test_filter_matches_title_or_description_case_insensitively():
    projects = [
        {"title": "Solar Kettle", "description": "Boil water with sunlight"},
        {"title": "Board game", "description": "A game about SOLAR sails"},
        {"title": "Garden", "description": "Community plots"},
    ]
    assert [p["title"] for p in filter_projects(projects, "solar")] == ["Solar Kettle", "Board game"]
    assert len(filter_projects(projects, "")) == 3
    assert filter_projects(projects, "zzz") == []


def test_unknown_sort_falls_back_to_newest():
    assert parse_sort("ending-soon") is SortOption.ending_soon
    assert parse_sort("bogus") is SortOption.newest
    assert parse_sort(None) is SortOption.newest


def test_project_create_trims_and_rejects_blank_title():
    payload = ProjectCreate(title="  Kettle ", description="x", goal_amount=10, end_date="2026-12-01")
    assert payload.title == "Kettle"
    with pytest.raises(ValueError):
        ProjectCreate(title="   ", description="x", goal_amount=10, end_date="2026-12-01")
