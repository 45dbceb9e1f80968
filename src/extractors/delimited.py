from __future__ import annotations

import logging
import zipfile
from io import BytesIO
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from src.extractors.tokens import parse_int
from src.taxonomy.fuel import FuelCode, FuelTaxonomy, is_mapped
from src.taxonomy.records import ALL_BRANDS, ALL_MODELS, CanonicalRecord
from src.utils.errors import ParseStructure
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

Buckets = Dict[MonthKey, Dict[FuelCode, int]]


def read_zip_csv(data: bytes, member_suffix: str = ".csv", encoding: str = "utf-8") -> pd.DataFrame:
    """First `.csv` member of a ZIP archive, every column as trimmed text."""
    try:
        zf = zipfile.ZipFile(BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ParseStructure(f"Not a ZIP archive: {e}") from e

    with zf:
        member = next((n for n in zf.namelist() if n.lower().endswith(member_suffix)), None)
        if member is None:
            raise ParseStructure(f"No {member_suffix} member in archive (members: {zf.namelist()})")
        logger.info("extracting member=%s", member)
        with zf.open(member) as f:
            df = pd.read_csv(f, dtype=str, encoding=encoding, skip_blank_lines=True, keep_default_na=False)

    df.columns = [str(c).strip() for c in df.columns]
    for c in df.columns:
        df[c] = df[c].str.strip()
    return df


def _require_columns(df: pd.DataFrame, columns: Iterable[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ParseStructure(f"Delimited file missing columns {missing}; found {list(df.columns)}")


def aggregate_national(
    rows: pd.DataFrame | Iterable[Mapping[str, Any]],
    *,
    region_field: str,
    region_match: str,
    period_field: str,
    fuel_field: str,
    value_field: str,
    taxonomy: FuelTaxonomy,
) -> Buckets:
    """
    Sum national rows into {month: {fuel: count}}.

    Only rows whose region contains `region_match` are kept. Fuel labels that do not map
    to a known code are left out of the buckets entirely.
    """
    if isinstance(rows, pd.DataFrame):
        _require_columns(rows, [region_field, period_field, fuel_field, value_field])
        records: Iterable[Mapping[str, Any]] = rows.to_dict(orient="records")
    else:
        records = rows

    buckets: Buckets = {}
    seen = 0
    bad_period = 0
    unmapped: Dict[str, int] = {}
    for row in records:
        if region_match not in str(row.get(region_field) or ""):
            continue
        seen += 1

        month = MonthKey.try_parse(str(row.get(period_field) or ""))
        if month is None:
            bad_period += 1
            logger.debug("unparseable period cell=%r", row.get(period_field))
            continue

        label = row.get(fuel_field)
        code = taxonomy.normalize(label)
        if not is_mapped(code):
            key = str(label)
            unmapped[key] = unmapped.get(key, 0) + 1
            continue

        count = parse_int(row.get(value_field)) or 0
        bucket = buckets.setdefault(month, {})
        bucket[code] = bucket.get(code, 0) + count

    logger.info(
        "national rows=%d months=%d bad_period=%d unmapped_labels=%s",
        seen,
        len(buckets),
        bad_period,
        sorted(unmapped),
    )
    return buckets


def records_from_buckets(
    buckets: Mapping[MonthKey, Mapping[FuelCode, int]],
    region: str,
    *,
    brand: str = ALL_BRANDS,
    model: str = ALL_MODELS,
    months: Optional[Iterable[MonthKey]] = None,
) -> List[CanonicalRecord]:
    wanted = set(months) if months is not None else None
    out: List[CanonicalRecord] = []
    for month in sorted(buckets):
        if wanted is not None and month not in wanted:
            continue
        rec = CanonicalRecord.from_totals(month, region, buckets[month], brand=brand, model=model)
        if not rec.is_empty:
            out.append(rec)
    return out
