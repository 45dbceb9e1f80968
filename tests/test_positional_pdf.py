import pytest

from src.extractors.positional_pdf import (
    ACEA_2024,
    ACEA_2024_NO_HYBRID,
    Fragment,
    choose_layout,
    cluster_rows,
    extract_country_counts,
    find_country_row,
    row_counts,
)
from src.taxonomy.fuel import FuelCode
from src.utils.errors import CountryNotFound, InsufficientData


def _row(y, text, page=0):
    return [Fragment(text=t, x=10.0 * i, y=y, page=page) for i, t in enumerate(text.split())]


FULL_ROW = (
    "Spain 5,000 4,000 +25.0 3,000 2,500 +20.0 20,000 18,000 +11.1 1,000 900 +11.1 "
    "30,000 29,000 +3.4 8,000 9,000 -11.1 67,000 63,400 +5.7"
)
DEGRADED_ROW = (
    "Spain 5,000 4,000 +25.0 3,000 2,500 +20.0 – – – 1,000 900 +11.1 "
    "30,000 29,000 +3.4 8,000 9,000 -11.1 47,000 45,400 +3.5"
)


def test_full_layout_assigns_even_positions():
    fragments = _row(50, "Country BEV PHEV HEV Others Petrol Diesel Total") + _row(120, FULL_ROW)
    counts = extract_country_counts(fragments, "ES")
    assert counts == {
        FuelCode.BEV: 5000,
        FuelCode.PHEV: 3000,
        FuelCode.HYBRID: 20000,
        FuelCode.OTHER: 1000,
        FuelCode.GASOLINE: 30000,
        FuelCode.DIESEL: 8000,
    }


def test_degraded_layout_reports_hybrid_zero_and_shifts_slots():
    counts = extract_country_counts(_row(120, DEGRADED_ROW), "ES")
    assert counts[FuelCode.BEV] == 5000
    assert counts[FuelCode.PHEV] == 3000
    assert counts[FuelCode.HYBRID] == 0
    assert counts[FuelCode.OTHER] == 1000
    assert counts[FuelCode.GASOLINE] == 30000
    assert counts[FuelCode.DIESEL] == 8000


def test_prose_mention_is_not_a_data_row():
    fragments = _row(40, "Spain grew 12% in 2024") + _row(120, FULL_ROW)
    row = find_country_row(cluster_rows(fragments), "ES")
    assert row[1].text == "5,000"


def test_fragments_cluster_by_rounded_y_and_sort_by_x():
    fragments = [
        Fragment("b", x=20, y=100.2),
        Fragment("a", x=5, y=99.8),
        Fragment("c", x=1, y=100.7),
        Fragment("d", x=1, y=100.2, page=1),
    ]
    rows = cluster_rows(fragments)
    assert [[f.text for f in r] for r in rows] == [["a", "b"], ["c"], ["d"]]


def test_multi_word_country_name_stripped():
    text = (
        "Czech Republic 2,000 1,900 +5.3 300 200 +50.0 900 800 +12.5 40 30 +33.3 "
        "5,000 4,000 +25.0 700 800 -12.5 8,940 7,730 +15.7"
    )
    row = find_country_row(cluster_rows(_row(10, text)), "CZ")
    values, dashes = row_counts(row, "CZ")
    assert values[0] == 2000
    assert len(values) == 14
    assert dashes == 0


def test_missing_country_raises():
    with pytest.raises(CountryNotFound):
        extract_country_counts(_row(120, FULL_ROW), "IT")


def test_too_few_values_raise_insufficient_data():
    with pytest.raises(InsufficientData):
        extract_country_counts(_row(120, "Spain 5,000 4,000 3,000 2,500 20,000 18,000 1,000 900"), "ES")


def test_choose_layout():
    assert choose_layout(14) is ACEA_2024
    assert choose_layout(12) is ACEA_2024_NO_HYBRID
    assert choose_layout(13) is ACEA_2024_NO_HYBRID
    assert choose_layout(16) is ACEA_2024
    with pytest.raises(InsufficientData):
        choose_layout(11)
