from __future__ import annotations

from datetime import datetime, timezone

import pytest

from helpdesk.core.guardrails.policy import BusinessHours, is_within_business_hours


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        (datetime(2025, 1, 6, 16, 59, tzinfo=timezone.utc), True),
        (datetime(2025, 1, 6, 17, 0, tzinfo=timezone.utc), False),
        (datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc), True),
        (datetime(2025, 1, 6, 8, 59, tzinfo=timezone.utc), False),
        (datetime(2025, 1, 11, 12, 0, tzinfo=timezone.utc), False),
    ],
)
def test_default_hours_are_half_open_monday_to_friday(moment: datetime, expected: bool) -> None:
    assert is_within_business_hours(None, now=moment) is expected
    assert is_within_business_hours(BusinessHours(), now=moment) is expected


def test_timezone_is_applied_before_comparing() -> None:
    hours = BusinessHours.model_validate(
        {"timezone": "America/New_York", "workDays": [1, 2, 3, 4, 5], "startTime": "09:00", "endTime": "17:00"}
    )

    # 13:30 UTC on a January Monday is 08:30 in New York
    assert is_within_business_hours(hours, now=datetime(2025, 1, 6, 13, 30, tzinfo=timezone.utc)) is False
    assert is_within_business_hours(hours, now=datetime(2025, 1, 6, 14, 0, tzinfo=timezone.utc)) is True


def test_day_names_are_accepted() -> None:
    hours = BusinessHours.model_validate({"workDays": ["Saturday", "sun"]})

    assert hours.work_days == [6, 7]
    assert is_within_business_hours(hours, now=datetime(2025, 1, 11, 12, 0, tzinfo=timezone.utc)) is True


def test_unknown_timezone_falls_back_to_utc() -> None:
    hours = BusinessHours(timezone="Mars/Olympus_Mons")

    assert is_within_business_hours(hours, now=datetime(2025, 1, 6, 16, 59, tzinfo=timezone.utc)) is True
    assert is_within_business_hours(hours, now=datetime(2025, 1, 6, 17, 0, tzinfo=timezone.utc)) is False


def test_naive_datetimes_are_treated_as_utc() -> None:
    assert is_within_business_hours(None, now=datetime(2025, 1, 6, 10, 0)) is True
