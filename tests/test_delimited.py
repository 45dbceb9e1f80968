import io
import zipfile

import pytest

from src.extractors.delimited import aggregate_national, read_zip_csv, records_from_buckets
from src.taxonomy.fuel import FuelCode, get_taxonomy
from src.utils.errors import ParseStructure
from src.utils.months import MonthKey

CSV = """region,fuel,month,"New registered passenger cars, number"
00 Sweden,petrol,2024M01,5000
00 Sweden,electricity,2024M01,3000
00 Sweden,gas/gas flex,2024M01,10
01 Stockholm county,petrol,2024M01,2000
00 Sweden,diesel,2024M02,800
00 Sweden,diesel,bad,5
"""


def _zip(members):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in members.items():
            zf.writestr(name, text)
    return buf.getvalue()


def _aggregate(df):
    return aggregate_national(
        df,
        region_field="region",
        region_match="00 Sweden",
        period_field="month",
        fuel_field="fuel",
        value_field="New registered passenger cars, number",
        taxonomy=get_taxonomy("SE"),
    )


def test_national_rows_bucketed_by_month_and_fuel():
    df = read_zip_csv(_zip({"README.txt": "x", "TAB3277_en.csv": CSV}))
    buckets = _aggregate(df)
    assert buckets == {
        MonthKey(2024, 1): {FuelCode.GASOLINE: 5000, FuelCode.BEV: 3000},
        MonthKey(2024, 2): {FuelCode.DIESEL: 800},
    }


def test_records_only_for_requested_months():
    df = read_zip_csv(_zip({"TAB3277_en.csv": CSV}))
    records = records_from_buckets(_aggregate(df), "SE", months=[MonthKey(2024, 2)])
    assert len(records) == 1
    assert records[0].region == "SE"
    assert records[0].totals() == {FuelCode.DIESEL: 800}


def test_missing_csv_member_raises():
    with pytest.raises(ParseStructure):
        read_zip_csv(_zip({"notes.txt": "nothing"}))


def test_not_a_zip_raises():
    with pytest.raises(ParseStructure):
        read_zip_csv(b"plain bytes")


def test_missing_column_raises():
    df = read_zip_csv(_zip({"a.csv": "region,fuel,month\n00 Sweden,petrol,2024M01\n"}))
    with pytest.raises(ParseStructure):
        _aggregate(df)
