from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from src.sources.base import MonthResult
from src.sources.registry import ResolvedParser, resolve_parsers
from src.utils.config import (
    get_default_start_year,
    get_http_settings,
    get_pipeline_paths,
    get_zone,
    get_zones,
    load_yaml,
)
from src.utils.errors import CollectionError, StorageFailure, UnknownZoneError
from src.utils.http_client import DocumentFetcher
from src.utils.logs import configure_logging
from src.utils.months import MonthKey, months_since
from src.utils.store import CanonicalStore, FetchRecord, utc_now_iso

logger = logging.getLogger(__name__)

# =============================================================================
# Collection run
#
#   zones.yaml -> per zone: parsers (registry) -> months since start year
#   -> store.filter_missing() BEFORE any network call
#   -> adapter.collect(country, missing) -> MonthResult per month
#   -> store.write() (write-once) + manifest line
#
# Failure scope: a CollectionError fails one month; an adapter-level error fails the
# months that run had not yet yielded; neither stops the zone loop. Every requested month
# ends persisted, skipped or failed. Re-running is idempotent.
# =============================================================================


@dataclass
class ZoneSummary:
    zone: str
    persisted: int = 0
    skipped: int = 0
    failed: int = 0
    parsers_run: int = 0

    def add(self, other: "ZoneSummary") -> None:
        self.persisted += other.persisted
        self.skipped += other.skipped
        self.failed += other.failed
        self.parsers_run += other.parsers_run


@dataclass
class RunSummary:
    zones: List[ZoneSummary] = field(default_factory=list)

    @property
    def persisted(self) -> int:
        return sum(z.persisted for z in self.zones)

    @property
    def skipped(self) -> int:
        return sum(z.skipped for z in self.zones)

    @property
    def failed(self) -> int:
        return sum(z.failed for z in self.zones)


def _manifest(store: CanonicalStore, country: str, result: MonthResult, status: str, error: str | None = None) -> None:
    rec = FetchRecord(
        fetched_at_utc=utc_now_iso(),
        month=result.month.code,
        url=result.source_url or "",
        sha256=result.sha256,
        bytes=result.bytes,
        status=status,
        error=error,
    )
    try:
        store.append_fetch_manifest(country, rec)
    except StorageFailure as e:
        logger.error("manifest append failed country=%s month=%s reason=%s", country, result.month.code, e)


def _handle_result(
    country: str,
    category: str,
    result: MonthResult,
    pending: set,
    store: CanonicalStore,
    summary: ZoneSummary,
) -> None:
    month = result.month
    if month not in pending:
        logger.debug("not requested or already handled, skipped country=%s month=%s", country, month.code)
        summary.skipped += 1
        return

    if result.error is not None or result.record is None:
        err = result.error or CollectionError("adapter returned neither record nor error")
        logger.warning(
            "month failed country=%s parser=%s month=%s error=%s reason=%s",
            country,
            category,
            month.code,
            type(err).__name__,
            err,
        )
        pending.discard(month)
        summary.failed += 1
        _manifest(store, country, result, "failed", f"{type(err).__name__}: {err}")
        return

    try:
        written = store.write(country, result.record)
    except (StorageFailure, ValueError) as e:
        logger.error("write failed country=%s month=%s reason=%s", country, month.code, e)
        pending.discard(month)
        summary.failed += 1
        _manifest(store, country, result, "failed", f"{type(e).__name__}: {e}")
        return

    pending.discard(month)
    if written:
        logger.info(
            "persisted country=%s parser=%s month=%s entries=%d",
            country,
            category,
            month.code,
            len(result.record.entries),
        )
        summary.persisted += 1
        _manifest(store, country, result, "persisted")
    else:
        summary.skipped += 1
        _manifest(store, country, result, "skipped")


def _fail_unproduced(
    country: str,
    category: str,
    pending: set,
    store: CanonicalStore,
    summary: ZoneSummary,
    reason: str,
) -> None:
    """Requested months the parser run ended without yielding are failures, never silent gaps."""
    for month in sorted(pending):
        logger.warning(
            "month not produced country=%s parser=%s month=%s reason=%s",
            country,
            category,
            month.code,
            reason,
        )
        summary.failed += 1
        _manifest(store, country, MonthResult(month=month), "failed", reason)
    pending.clear()


def collect_zone(
    country: str,
    parsers: Sequence[ResolvedParser],
    store: CanonicalStore,
    default_start_year: int,
    today: Optional[date] = None,
) -> ZoneSummary:
    summary = ZoneSummary(zone=country)
    for parser in parsers:
        start_year = parser.start_year or default_start_year
        months = months_since(start_year, today=today)
        try:
            missing: List[MonthKey] = store.filter_missing(country, months)
        except StorageFailure as e:
            logger.error("store unavailable country=%s reason=%s", country, e)
            summary.failed += 1
            continue

        if not missing:
            logger.info("up to date country=%s parser=%s months=%d", country, parser.category, len(months))
            continue

        logger.info(
            "collecting country=%s parser=%s adapter=%s missing=%d first=%s last=%s",
            country,
            parser.category,
            parser.adapter.name,
            len(missing),
            missing[0].code,
            missing[-1].code,
        )
        summary.parsers_run += 1
        pending = set(missing)
        run_error: Optional[str] = None
        try:
            for result in parser.adapter.collect(country, missing):
                _handle_result(country, parser.category, result, pending, store, summary)
        except CollectionError as e:
            logger.warning(
                "parser run failed country=%s parser=%s error=%s reason=%s",
                country,
                parser.category,
                type(e).__name__,
                e,
            )
            run_error = f"{type(e).__name__}: {e}"
        except Exception as e:
            logger.exception("parser crashed country=%s parser=%s", country, parser.category)
            run_error = f"{type(e).__name__}: {e}"

        if pending:
            reason = run_error or "not produced by parser"
            _fail_unproduced(country, parser.category, pending, store, summary, reason)
        elif run_error is not None:
            summary.failed += 1

    logger.info(
        "zone done zone=%s persisted=%d skipped=%d failed=%d",
        country,
        summary.persisted,
        summary.skipped,
        summary.failed,
    )
    return summary


def run(
    pipeline_cfg: Dict[str, Any],
    zones_cfg: Dict[str, Any],
    zone: Optional[str] = None,
    fetcher: Optional[DocumentFetcher] = None,
    today: Optional[date] = None,
) -> RunSummary:
    paths = get_pipeline_paths(pipeline_cfg)
    store = CanonicalStore(paths["data_dir"])
    fetcher = fetcher or DocumentFetcher(settings=get_http_settings(pipeline_cfg))
    default_start_year = get_default_start_year(pipeline_cfg)

    if zone is not None:
        targets = {zone: get_zone(zones_cfg, zone)}
    else:
        targets = get_zones(zones_cfg)

    summary = RunSummary()
    for code, zone_cfg in targets.items():
        zone_cfg = zone_cfg or {}
        parsers = resolve_parsers(code, zone_cfg, fetcher)
        if not parsers:
            logger.info("no parsers configured zone=%s", code)
            continue
        summary.zones.append(collect_zone(code, parsers, store, default_start_year, today=today))
    return summary


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Collect monthly new-car registrations by fuel type into the canonical store."
    )
    ap.add_argument("zone", nargs="?", default=None, help="Zone code from zones.yaml (default: all zones)")
    ap.add_argument("--pipeline", default="configs/pipeline.yaml", help="Path to configs/pipeline.yaml")
    ap.add_argument("--zones", default="configs/zones.yaml", help="Path to configs/zones.yaml")
    ap.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING)")
    args = ap.parse_args(argv)

    configure_logging(args.log_level)

    pipeline_cfg = load_yaml(args.pipeline)
    zones_cfg = load_yaml(args.zones)

    try:
        summary = run(pipeline_cfg, zones_cfg, zone=args.zone)
    except UnknownZoneError as e:
        logger.error("%s", e)
        return 1

    logger.info(
        "run complete zones=%d persisted=%d skipped=%d failed=%d",
        len(summary.zones),
        summary.persisted,
        summary.skipped,
        summary.failed,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
