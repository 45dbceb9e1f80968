from datetime import date

import pytest

from src.utils.months import MonthKey, months_since


def test_months_since_is_gapless_and_ends_at_current_month():
    months = months_since(2023, today=date(2024, 3, 15))
    assert months[0] == MonthKey(2023, 1)
    assert months[-1] == MonthKey(2024, 3)
    assert len(months) == 15
    for a, b in zip(months, months[1:]):
        assert a.next() == b


def test_months_since_future_start_is_empty():
    assert months_since(2030, today=date(2024, 3, 1)) == []


def test_encodings():
    m = MonthKey(2024, 3)
    assert m.code == "2024-03"
    assert m.ssb_code == "2024M03"
    assert m.underscore_code == "2024_03"
    assert m.month_name("en") == "March"
    assert MonthKey(2024, 2).month_name("fr") == "fevrier"
    assert MonthKey(2024, 2).last_day == 29


@pytest.mark.parametrize("text", ["2024-03", "2024_03", "2024/3", "2024M03"])
def test_parse_accepts_publisher_forms(text):
    assert MonthKey.parse(text) == MonthKey(2024, 3)


def test_parse_rejects_garbage():
    with pytest.raises(ValueError):
        MonthKey.parse("March 2024")
    assert MonthKey.try_parse("2024-13") is None
    assert MonthKey.try_parse("") is None


def test_previous_crosses_year_boundary():
    assert MonthKey(2024, 1).previous() == MonthKey(2023, 12)
    assert MonthKey(2023, 12).next() == MonthKey(2024, 1)


def test_month_out_of_range_rejected():
    with pytest.raises(ValueError):
        MonthKey(2024, 0)
