from pathlib import Path

import pytest

from src.utils.config import (
    get_default_start_year,
    get_http_settings,
    get_pipeline_paths,
    get_zone,
    get_zones,
    load_yaml,
)
from src.utils.errors import UnknownZoneError


def test_load_yaml_requires_mapping(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")  # YAML list, not dict
    with pytest.raises(ValueError):
        load_yaml(p)


def test_load_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_yaml(tmp_path / "nope.yaml")


def test_get_pipeline_paths_requires_storage_keys():
    with pytest.raises(ValueError):
        get_pipeline_paths({"storage": {"processed_dir": "x"}})


def test_get_pipeline_paths_returns_data_dir():
    assert get_pipeline_paths({"storage": {"data_dir": "data"}}) == {"data_dir": "data"}


def test_http_settings_fall_back_to_defaults():
    s = get_http_settings({"http": {"timeout_seconds": 5}})
    assert s.timeout_seconds == 5.0
    assert s.user_agent == "EV-Tracker/1.0"
    assert s.max_redirects == 5


def test_default_start_year():
    assert get_default_start_year({}) == 2019
    assert get_default_start_year({"collect": {"default_start_year": 2021}}) == 2021


def test_get_zone_unknown_lists_available():
    cfg = {"zones": {"FR": {"name": "France"}, "DE": {"name": "Germany"}}}
    with pytest.raises(UnknownZoneError) as ei:
        get_zone(cfg, "XX")
    assert ei.value.available == ["DE", "FR"]
    assert "DE, FR" in str(ei.value)


def test_get_zones_requires_mapping():
    with pytest.raises(ValueError):
        get_zones({"zones": []})


def test_shipped_zone_registry_keys_are_strings():
    cfg = load_yaml(Path(__file__).resolve().parents[1] / "configs" / "zones.yaml")
    zones = get_zones(cfg)
    assert all(isinstance(k, str) for k in zones)
    assert {"FR", "DE", "SE", "NL", "NO", "CN"} <= set(zones)


def test_shipped_germany_starts_with_first_kba_year():
    cfg = load_yaml(Path(__file__).resolve().parents[1] / "configs" / "zones.yaml")
    assert get_zones(cfg)["DE"]["start_year"] == 2021
