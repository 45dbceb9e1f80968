from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from src.extractors.estimation import NevRatioEstimator
from src.sources.acea import ACEA_COUNTRIES, AceaAdapter
from src.sources.base import SourceAdapter
from src.sources.cnevpost import CnEvPostAdapter
from src.sources.kba import KbaAdapter
from src.sources.rdw import RdwAdapter
from src.sources.scb import ScbAdapter
from src.sources.sdes import SdesAdapter
from src.sources.ssb import SsbAdapter
from src.utils.http_client import DocumentFetcher

logger = logging.getLogger(__name__)

# (fetcher, parser options from zones.yaml) -> adapter
AdapterFactory = Callable[[DocumentFetcher, Mapping[str, Any]], SourceAdapter]


def _cn_factory(fetcher: DocumentFetcher, options: Mapping[str, Any]) -> SourceAdapter:
    est_cfg = options.get("nev_estimator", {}) or {}
    estimator = NevRatioEstimator(
        ratio=float(est_cfg.get("ratio", 0.40)),
        min_nev=int(est_cfg.get("min_nev", 500_000)),
        enabled=bool(est_cfg.get("enabled", True)),
    )
    return CnEvPostAdapter(fetcher, estimator=estimator, workbook_url=options.get("workbook_url"))


def _acea_factory(country: str) -> AdapterFactory:
    return lambda fetcher, options: AceaAdapter(fetcher, country=country)


ADAPTERS: Dict[Tuple[str, str], AdapterFactory] = {
    ("DE", "fetchAllEVData"): lambda fetcher, options: KbaAdapter(fetcher),
    ("FR", "fetchAllEVData"): lambda fetcher, options: SdesAdapter(fetcher),
    ("SE", "fetchAllEVData"): lambda fetcher, options: ScbAdapter(fetcher),
    ("NL", "fetchAllEVData"): lambda fetcher, options: RdwAdapter(fetcher),
    ("NO", "fetchAllEVData"): lambda fetcher, options: SsbAdapter(fetcher),
    ("CN", "fetchAllEVData"): _cn_factory,
}
for _cc in ACEA_COUNTRIES:
    ADAPTERS[("ACEA", f"collectAceaData{_cc}")] = _acea_factory(_cc)


@dataclass
class ResolvedParser:
    category: str
    adapter: SourceAdapter
    start_year: Optional[int] = None


def resolve_parsers(
    zone_code: str,
    zone_cfg: Mapping[str, Any],
    fetcher: DocumentFetcher,
    registry: Optional[Mapping[Tuple[str, str], AdapterFactory]] = None,
) -> List[ResolvedParser]:
    """
    Adapters for a zone's `parsers` mapping, in configuration order.
    Unknown (script, function) pairs are logged and skipped; they never abort the zone.
    """
    registry = ADAPTERS if registry is None else registry
    zone_start = zone_cfg.get("start_year")
    out: List[ResolvedParser] = []
    for category, parser_cfg in (zone_cfg.get("parsers") or {}).items():
        parser_cfg = parser_cfg or {}
        key = (str(parser_cfg.get("script", "")), str(parser_cfg.get("function", "")))
        factory = registry.get(key)
        if factory is None:
            logger.warning("unknown parser zone=%s category=%s script=%s function=%s", zone_code, category, *key)
            continue
        start_year = parser_cfg.get("start_year", zone_start)
        out.append(
            ResolvedParser(
                category=str(category),
                adapter=factory(fetcher, parser_cfg.get("options", {}) or {}),
                start_year=int(start_year) if start_year is not None else None,
            )
        )
    return out
