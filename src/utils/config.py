from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from src.utils.errors import UnknownZoneError
from src.utils.http_client import HttpSettings

DEFAULT_START_YEAR = 2019


def load_yaml(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping/dict: {p}")
    return data


def get_pipeline_paths(pipeline_cfg: Dict[str, Any]) -> Dict[str, str]:
    storage = pipeline_cfg.get("storage", {}) or {}
    data_dir = storage.get("data_dir")
    if not data_dir:
        raise ValueError("pipeline.yaml missing storage.data_dir")
    return {"data_dir": str(data_dir)}


def get_http_settings(pipeline_cfg: Dict[str, Any]) -> HttpSettings:
    http_cfg = pipeline_cfg.get("http", {}) or {}
    defaults = HttpSettings()
    return HttpSettings(
        user_agent=str(http_cfg.get("user_agent", defaults.user_agent)),
        timeout_seconds=float(http_cfg.get("timeout_seconds", defaults.timeout_seconds)),
        rate_limit_seconds=float(http_cfg.get("rate_limit_seconds", defaults.rate_limit_seconds)),
        max_redirects=int(http_cfg.get("max_redirects", defaults.max_redirects)),
        retry_delay_seconds=float(http_cfg.get("retry_delay_seconds", defaults.retry_delay_seconds)),
    )


def get_default_start_year(pipeline_cfg: Dict[str, Any]) -> int:
    collect_cfg = pipeline_cfg.get("collect", {}) or {}
    return int(collect_cfg.get("default_start_year", DEFAULT_START_YEAR))


def get_zones(zones_cfg: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    zones = zones_cfg.get("zones")
    if not isinstance(zones, dict) or not zones:
        raise ValueError("zones.yaml must define a non-empty 'zones' mapping")
    return zones


def get_zone(zones_cfg: Dict[str, Any], code: str) -> Dict[str, Any]:
    zones = get_zones(zones_cfg)
    if code not in zones:
        raise UnknownZoneError(code, zones.keys())
    return zones[code] or {}
