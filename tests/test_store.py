import json

import pytest

from src.taxonomy.fuel import FuelCode
from src.taxonomy.records import CanonicalRecord, FuelEntry
from src.utils.months import MonthKey
from src.utils.store import CanonicalStore, FetchRecord


def _record(month=MonthKey(2024, 3), region="FR", bev=100, diesel=50):
    return CanonicalRecord.from_totals(
        month, region, {FuelCode.DIESEL: diesel, FuelCode.BEV: bev}, brand="Toutes marques", model="Tous modèles"
    )


def test_write_then_read_layout(tmp_path):
    store = CanonicalStore(tmp_path)
    assert store.write("FR", _record()) is True

    p = tmp_path / "FR" / "ev" / "2024-03.json"
    obj = json.loads(p.read_text(encoding="utf-8"))
    assert obj["year"] == 2024 and obj["month"] == 3
    assert obj["region"] == "FR" and obj["type"] == "all"
    # canonical order: BEV before DIESEL
    assert [d["energie"] for d in obj["data"]] == ["BEV", "DIESEL"]
    assert obj["data"][0] == {"marque": "Toutes marques", "modele": "Tous modèles", "total": 100, "energie": "BEV"}

    back = store.read("FR", MonthKey(2024, 3))
    assert back.totals() == {FuelCode.BEV: 100, FuelCode.DIESEL: 50}


def test_write_once(tmp_path):
    store = CanonicalStore(tmp_path)
    assert store.write("FR", _record(bev=100)) is True
    before = store.path_for("FR", MonthKey(2024, 3)).read_bytes()
    assert store.write("FR", _record(bev=999)) is False
    assert store.path_for("FR", MonthKey(2024, 3)).read_bytes() == before


def test_empty_record_refused(tmp_path):
    store = CanonicalStore(tmp_path)
    empty = CanonicalRecord.from_totals(MonthKey(2024, 3), "FR", {FuelCode.BEV: 0})
    assert empty.is_empty
    with pytest.raises(ValueError):
        store.write("FR", empty)
    assert not store.exists("FR", MonthKey(2024, 3))


def test_no_temp_files_left_behind(tmp_path):
    store = CanonicalStore(tmp_path)
    store.write("FR", _record())
    assert [p.name for p in (tmp_path / "FR" / "ev").iterdir()] == ["2024-03.json"]


def test_filter_missing_preserves_order_and_creates_dir(tmp_path):
    store = CanonicalStore(tmp_path)
    months = [MonthKey(2024, m) for m in range(1, 5)]
    store.write("DE", _record(month=MonthKey(2024, 2), region="DE"))
    assert store.filter_missing("DE", months) == [MonthKey(2024, 1), MonthKey(2024, 3), MonthKey(2024, 4)]
    assert store.filter_missing("SE", months) == months
    assert (tmp_path / "SE" / "ev").is_dir()
    assert store.months("DE") == [MonthKey(2024, 2)]


def test_keep_zero_records_zero_slots():
    rec = CanonicalRecord.from_totals(MonthKey(2024, 3), "ES", {FuelCode.HYBRID: 0, FuelCode.BEV: 5}, keep_zero=True)
    assert rec.totals() == {FuelCode.BEV: 5, FuelCode.HYBRID: 0}


def test_negative_entry_rejected():
    with pytest.raises(ValueError):
        FuelEntry(total=-1, fuel_code=FuelCode.BEV)


def test_append_fetch_manifest_appends_valid_json(tmp_path):
    store = CanonicalStore(tmp_path)
    rec = FetchRecord(
        fetched_at_utc="2024-04-01T00:00:00+00:00",
        month="2024-03",
        url="https://example.test/y",
        sha256="ab" * 32,
        bytes=10,
        status="persisted",
    )
    store.append_fetch_manifest("FR", rec)
    store.append_fetch_manifest("FR", rec)

    lines = (tmp_path / "FR" / "manifest.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    obj = json.loads(lines[0])
    assert obj["url"] == "https://example.test/y"
    assert obj["status"] == "persisted"
