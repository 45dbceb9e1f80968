from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from src.extractors.tokens import parse_int
from src.taxonomy.fuel import FuelCode, FuelTaxonomy, is_mapped
from src.taxonomy.records import ALL_BRANDS, ALL_MODELS, CanonicalRecord
from src.utils.errors import ParseStructure
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

Row = List[Any]

COVER_SHEET_RX = re.compile(r"deckblatt|impressum|inhalt|cover|contents|notes", flags=re.IGNORECASE)


# ----------------------------
# Workbook -> rows
# ----------------------------

def read_sheet_rows(data: bytes, prefer: Optional[str] = None) -> Tuple[str, List[Row]]:
    """
    Load one sheet as plain Python rows (None for blank cells).
    Sheet choice: first name matching `prefer`, else first non-cover sheet, else the first sheet.
    """
    try:
        xls = pd.ExcelFile(BytesIO(data))
    except Exception as e:
        raise ParseStructure(f"Unreadable workbook: {e}") from e

    names = list(xls.sheet_names)
    if not names:
        raise ParseStructure("Workbook has no sheets")

    chosen = None
    if prefer:
        chosen = next((n for n in names if re.search(prefer, n, flags=re.IGNORECASE)), None)
    if chosen is None:
        chosen = next((n for n in names if not COVER_SHEET_RX.search(n)), names[0])

    try:
        df = xls.parse(chosen, header=None, dtype=object)
    except Exception as e:
        raise ParseStructure(f"Unreadable sheet {chosen!r}: {e}") from e
    rows: List[Row] = []
    for tup in df.itertuples(index=False, name=None):
        rows.append([None if _is_blank(v) else v for v in tup])
    logger.debug("parsed sheet=%s rows=%d", chosen, len(rows))
    return chosen, rows


def _is_blank(v: Any) -> bool:
    if v is None:
        return True
    try:
        return bool(pd.isna(v))
    except (TypeError, ValueError):
        return False


def cell_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, (datetime, date)):
        return v.strftime("%Y-%m")
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return re.sub(r"\s+", " ", str(v)).strip()


# ----------------------------
# Period-rows mode (one row per month)
# ----------------------------

def find_header_row(rows: Sequence[Row], taxonomy: FuelTaxonomy) -> Tuple[int, Dict[int, FuelCode]]:
    """
    First row holding at least one cell that resolves to a known fuel code.
    Publishers move the header between editions, so the index is never hardcoded.
    """
    for i, row in enumerate(rows):
        mapping: Dict[int, FuelCode] = {}
        for j, cell in enumerate(row):
            if not isinstance(cell, str):
                continue
            code = taxonomy.normalize(cell)
            if is_mapped(code):
                mapping[j] = code
        if mapping:
            return i, mapping
    raise ParseStructure(f"No header row with {taxonomy.namespace} fuel labels found")


def find_date_column(header: Row, mapping: Mapping[int, FuelCode]) -> int:
    width = max(len(header), max(mapping) + 1 if mapping else 0)
    for j in range(width):
        if j not in mapping:
            return j
    raise ParseStructure("Every header column is claimed by a fuel mapping; no period column left")


def extract_period_rows(
    rows: Sequence[Row],
    taxonomy: FuelTaxonomy,
    region: str,
    period_pattern: re.Pattern,
    *,
    brand: str = ALL_BRANDS,
    model: str = ALL_MODELS,
) -> List[CanonicalRecord]:
    header_idx, mapping = find_header_row(rows, taxonomy)
    date_col = find_date_column(rows[header_idx], mapping)
    logger.info(
        "header found row=%d date_col=%d columns=%s",
        header_idx,
        date_col,
        {j: c.value for j, c in mapping.items()},
    )

    records: List[CanonicalRecord] = []
    skipped = 0
    for row in rows[header_idx + 1:]:
        raw = cell_text(row[date_col]) if date_col < len(row) else ""
        if not raw:
            continue
        if not period_pattern.match(raw):
            skipped += 1
            logger.debug("period cell does not match pattern=%s cell=%r", period_pattern.pattern, raw)
            continue
        month = MonthKey.try_parse(raw)
        if month is None:
            skipped += 1
            continue

        aggregated: Dict[FuelCode, int] = {}
        for col, code in mapping.items():
            val = parse_int(row[col]) if col < len(row) else None
            if val is None or val <= 0:
                continue
            aggregated[code] = aggregated.get(code, 0) + val

        rec = CanonicalRecord.from_totals(month, region, aggregated, brand=brand, model=model)
        if not rec.is_empty:
            records.append(rec)

    if skipped:
        logger.info("rows skipped for unmatched period cells count=%d", skipped)
    return records


# ----------------------------
# Grand-total mode (one aggregate row per file)
# ----------------------------

@dataclass(frozen=True)
class ColumnRule:
    """Header cell -> logical column key. All `include` substrings present, no `exclude` substring."""

    key: str
    include: Tuple[str, ...]
    exclude: Tuple[str, ...] = ()

    def matches(self, label: str) -> bool:
        low = label.lower()
        return all(s in low for s in self.include) and not any(s in low for s in self.exclude)


@dataclass(frozen=True)
class ResidualRule:
    """
    Derived bucket = total column minus known columns.

    A subtrahend column missing from the sheet is replaced by the sum of its `substitutes`.
    A negative or zero residual is discarded, never recorded.
    """

    code: FuelCode
    total_key: str
    subtract_keys: Tuple[str, ...]
    substitutes: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def compute(self, values: Mapping[str, int]) -> Optional[int]:
        if self.total_key not in values:
            return None
        known = 0
        for key in self.subtract_keys:
            if key in values:
                known += values[key]
            else:
                known += sum(values.get(k, 0) for k in self.substitutes.get(key, ()))
        residual = values[self.total_key] - known
        if residual <= 0:
            logger.warning(
                "residual discarded code=%s total=%d known=%d residual=%d",
                self.code.value,
                values[self.total_key],
                known,
                residual,
            )
            return None
        return residual


def find_marker_row(rows: Sequence[Row], marker: str, *, from_bottom: bool = False) -> Optional[int]:
    needle = marker.lower()
    order = range(len(rows) - 1, -1, -1) if from_bottom else range(len(rows))
    for i in order:
        if any(needle in cell_text(c).lower() for c in rows[i]):
            return i
    return None


def map_header_columns(header: Row, rules: Sequence[ColumnRule]) -> Dict[str, int]:
    columns: Dict[str, int] = {}
    for j, cell in enumerate(header):
        label = cell_text(cell)
        if not label:
            continue
        for rule in rules:
            if rule.matches(label):
                columns.setdefault(rule.key, j)
                break
    return columns


def extract_total_row(
    rows: Sequence[Row],
    *,
    header_marker: str,
    total_marker: str,
    rules: Sequence[ColumnRule],
    fuel_keys: Mapping[str, FuelCode],
    residual: Optional[ResidualRule] = None,
) -> Dict[FuelCode, int]:
    header_idx = find_marker_row(rows, header_marker)
    if header_idx is None:
        raise ParseStructure(f"Header marker not found: {header_marker!r}")
    columns = map_header_columns(rows[header_idx], rules)
    if not columns:
        raise ParseStructure(f"No known columns in header row {header_idx}")

    total_idx = find_marker_row(rows, total_marker, from_bottom=True)
    if total_idx is None:
        raise ParseStructure(f"Grand-total row not found: {total_marker!r}")
    total_row = rows[total_idx]
    logger.debug("grand-total row=%d header row=%d columns=%s", total_idx, header_idx, columns)

    values: Dict[str, int] = {}
    for key, col in columns.items():
        val = parse_int(total_row[col]) if col < len(total_row) else None
        values[key] = val if val is not None else 0

    out: Dict[FuelCode, int] = {}
    for key, code in fuel_keys.items():
        if values.get(key, 0) > 0:
            out[code] = values[key]

    if residual is not None:
        derived = residual.compute(values)
        if derived is not None:
            out[residual.code] = derived
    return out
