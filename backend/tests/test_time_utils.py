from datetime import date, datetime

import pytest

from shopledger.time_utils import (
    add_months,
    day_key,
    local_date_of,
    local_day_start_utc,
    month_label,
    months_spanned,
    parse_business_date,
    parse_iso_datetime,
    parse_month,
    to_utc_z,
)


@pytest.mark.parametrize("value", ["2024/05/01", "2024-5-1", "20240501", date(2024, 5, 1)])
def test_parse_business_date_formats(value):
    assert parse_business_date(value) == date(2024, 5, 1)


@pytest.mark.parametrize("value", ["", "2024/13/01", "May 1", None, 20240501])
def test_parse_business_date_rejects(value):
    with pytest.raises(ValueError):
        parse_business_date(value)


def test_parse_month():
    assert parse_month("2024-04") == date(2024, 4, 1)
    assert parse_month("202404") == date(2024, 4, 1)
    assert parse_month(date(2024, 4, 17)) == date(2024, 4, 1)
    with pytest.raises(ValueError):
        parse_month("2024")


def test_month_arithmetic():
    assert add_months(date(2024, 1, 15), -1) == date(2023, 12, 1)
    assert add_months(date(2024, 11, 1), 3) == date(2025, 2, 1)
    assert months_spanned(date(2024, 1, 1), date(2024, 6, 1)) == 6
    assert months_spanned(date(2023, 11, 1), date(2024, 2, 1)) == 4
    assert month_label(date(2024, 4, 1)) == "202404"
    assert day_key(date(2024, 4, 9)) == "2024/04/09"


def test_business_day_boundaries_are_tokyo():
    # 2024-05-01 00:00 JST == 2024-04-30 15:00 UTC
    assert local_day_start_utc(date(2024, 5, 1)) == datetime(2024, 4, 30, 15, 0)
    assert local_date_of(datetime(2024, 4, 30, 15, 0)) == date(2024, 5, 1)
    assert local_date_of(datetime(2024, 4, 30, 14, 59)) == date(2024, 4, 30)


def test_iso_round_trip_to_utc():
    assert parse_iso_datetime("2024-05-01T09:00+09:00") == datetime(2024, 5, 1, 0, 0)
    assert parse_iso_datetime("") is None
    assert to_utc_z(datetime(2024, 5, 1, 0, 0, 30, 500)) == "2024-05-01T00:00:30Z"
