import datetime

import pytest

from devgrowth.growth_accounting import InvalidTimestamp, add_months, iter_months, months_between, normalize_period, period_key
from devgrowth.growth_accounting.periods import UTC, month_label


def test_same_month_normalizes_to_identical_key():
    end_of_january = normalize_period("2024-01-31T23:59:59Z")
    start_of_january = normalize_period("2024-01-01T00:00:00Z")
    assert end_of_january == start_of_january
    assert period_key("2024-01-31T23:59:59Z") == period_key("2024-01-01T00:00:00Z") == "2024-01-01T00:00:00Z"


def test_first_of_next_month_is_a_different_key():
    february = normalize_period("2024-02-01T00:00:00Z")
    assert february != normalize_period("2024-01-31T23:59:59Z")
    assert february == add_months(normalize_period("2024-01-15"), 1)


def test_key_is_first_instant_in_utc():
    period = normalize_period("2024-05-17T13:45:00Z")
    assert period == datetime.datetime(2024, 5, 1, tzinfo=UTC)
    assert period.utcoffset() == datetime.timedelta(0)


def test_naive_values_use_source_timezone():
    # 00:30 on Feb 1st in Berlin is still January in UTC.
    local = datetime.datetime(2024, 2, 1, 0, 30)
    assert normalize_period(local, "Europe/Berlin") == datetime.datetime(2024, 1, 1, tzinfo=UTC)
    assert normalize_period(local) == datetime.datetime(2024, 2, 1, tzinfo=UTC)


def test_offsets_in_strings_are_respected():
    assert normalize_period("2024-02-01T00:30:00+01:00") == datetime.datetime(2024, 1, 1, tzinfo=UTC)


@pytest.mark.parametrize(
    "value, expected",
    [
        (datetime.date(2024, 3, 9), datetime.datetime(2024, 3, 1, tzinfo=UTC)),
        ("2024-03", datetime.datetime(2024, 3, 1, tzinfo=UTC)),
        ("2024-03-09", datetime.datetime(2024, 3, 1, tzinfo=UTC)),
        (0, datetime.datetime(1970, 1, 1, tzinfo=UTC)),
        (1709251200.0, datetime.datetime(2024, 3, 1, tzinfo=UTC)),
    ],
)
def test_supported_representations(value, expected):
    assert normalize_period(value) == expected


@pytest.mark.parametrize("value", ["not a date", "", "2024-13", "2024-02-30", None, True, object()])
def test_unparsable_values_raise(value):
    with pytest.raises(InvalidTimestamp):
        normalize_period(value)


def test_unknown_timezone_raises():
    with pytest.raises(InvalidTimestamp):
        normalize_period("2024-01-01T00:00:00", "Mars/Olympus_Mons")


def test_month_arithmetic_crosses_years():
    december = normalize_period("2023-12-10")
    assert add_months(december, 1) == normalize_period("2024-01-01")
    assert add_months(normalize_period("2024-01-01"), -1) == december
    assert months_between(december, normalize_period("2025-02-01")) == 14
    assert months_between(normalize_period("2025-02-01"), december) == -14


def test_iter_months_is_inclusive():
    months = list(iter_months(normalize_period("2023-11"), normalize_period("2024-02")))
    assert [period_key(month) for month in months] == [
        "2023-11-01T00:00:00Z",
        "2023-12-01T00:00:00Z",
        "2024-01-01T00:00:00Z",
        "2024-02-01T00:00:00Z",
    ]
    assert list(iter_months(normalize_period("2024-02"), normalize_period("2024-01"))) == []


def test_month_label():
    assert month_label(normalize_period("2024-01-20")) == "Jan 2024"


@pytest.mark.parametrize("value", ["2024-02", "2024-02-01", " 2024-02-29 ", datetime.date(2024, 2, 1)])
@pytest.mark.parametrize("zone", ["Asia/Tokyo", "America/Los_Angeles", "UTC"])
def test_month_and_day_precision_keep_their_calendar_month(value, zone):
    assert period_key(value, zone) == "2024-02-01T00:00:00Z"


def test_clock_times_are_still_localized():
    # 05:00 on Feb 1st in Tokyo is 20:00 on Jan 31st in UTC.
    assert period_key("2024-02-01T05:00:00", "Asia/Tokyo") == "2024-01-01T00:00:00Z"
