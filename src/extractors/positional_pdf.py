from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

import pdfplumber
from pypdf import PdfReader

from src.extractors.tokens import DASH, tokenize, unsigned_ints
from src.taxonomy.fuel import FuelCode
from src.utils.errors import CountryNotFound, InsufficientData, ParseStructure

logger = logging.getLogger(__name__)

# =============================================================================
# Positional PDF table reader (multi-country press releases)
#
#   1) words with coordinates          -> Fragment(text, x, y, page)
#   2) rows by rounded y, sorted by x  -> cluster_rows()
#   3) country row = name variant + enough plain integers
#   4) drop name / percent / signed / placeholder tokens, keep unsigned ints
#   5) ints -> fuel slots through a versioned SlotLayout chosen by token count
#
# Each fuel type is published as a (current period, prior-year period) pair, so only
# even positions are current values.
# =============================================================================

COUNTRY_NAMES: Dict[str, List[str]] = {
    "FR": ["France", "FRANCE"],
    "DE": ["Germany", "GERMANY", "Deutschland"],
    "ES": ["Spain", "SPAIN", "España", "Espana"],
    "IT": ["Italy", "ITALY", "Italia"],
    "NL": ["Netherlands", "NETHERLANDS", "Nederland", "The Netherlands"],
    "BE": ["Belgium", "BELGIUM", "Belgique", "België"],
    "PT": ["Portugal", "PORTUGAL"],
    "SE": ["Sweden", "SWEDEN", "Sverige"],
    "NO": ["Norway", "NORWAY", "Norge"],
    "PL": ["Poland", "POLAND", "Polska"],
    "AT": ["Austria", "AUSTRIA", "Österreich", "Osterreich"],
    "DK": ["Denmark", "DENMARK", "Danmark"],
    "FI": ["Finland", "FINLAND", "Suomi"],
    "IE": ["Ireland", "IRELAND"],
    "GR": ["Greece", "GREECE"],
    "CZ": ["Czech Republic", "CZECH REPUBLIC", "Czechia"],
    "RO": ["Romania", "ROMANIA"],
    "HU": ["Hungary", "HUNGARY"],
    "SK": ["Slovakia", "SLOVAKIA"],
    "BG": ["Bulgaria", "BULGARIA"],
    "HR": ["Croatia", "CROATIA"],
    "LT": ["Lithuania", "LITHUANIA"],
    "LV": ["Latvia", "LATVIA"],
    "EE": ["Estonia", "ESTONIA"],
    "SI": ["Slovenia", "SLOVENIA"],
}

# Plain integers a row needs before it counts as a data row rather than prose
MIN_ROW_NUMBERS = 4


@dataclass(frozen=True)
class Fragment:
    text: str
    x: float
    y: float
    page: int = 0


@dataclass(frozen=True)
class SlotLayout:
    """
    Left-to-right (current, prior) pairs. A slot of None is read but not emitted (e.g. row total).
    `absent` codes are missing from this layout and are reported as 0.
    """

    version: str
    slots: Tuple[Optional[FuelCode], ...]
    absent: Tuple[FuelCode, ...] = ()

    @property
    def expected_tokens(self) -> int:
        return 2 * len(self.slots)

    def assign(self, values: Sequence[int]) -> Dict[FuelCode, int]:
        if len(values) < self.expected_tokens:
            raise InsufficientData(
                f"Layout {self.version} needs {self.expected_tokens} values, got {len(values)}"
            )
        out: Dict[FuelCode, int] = {}
        for i, code in enumerate(self.slots):
            if code is not None:
                out[code] = int(values[2 * i])
        for code in self.absent:
            out[code] = 0
        return out


ACEA_2024 = SlotLayout(
    version="acea-2024",
    slots=(
        FuelCode.BEV,
        FuelCode.PHEV,
        FuelCode.HYBRID,
        FuelCode.OTHER,
        FuelCode.GASOLINE,
        FuelCode.DIESEL,
        None,  # total
    ),
)

# Hybrid pair printed as dashes: two fewer integers, remaining pairs shift left
ACEA_2024_NO_HYBRID = SlotLayout(
    version="acea-2024-no-hybrid",
    slots=(
        FuelCode.BEV,
        FuelCode.PHEV,
        FuelCode.OTHER,
        FuelCode.GASOLINE,
        FuelCode.DIESEL,
        None,
    ),
    absent=(FuelCode.HYBRID,),
)

DEFAULT_LAYOUTS: Tuple[SlotLayout, ...] = (ACEA_2024, ACEA_2024_NO_HYBRID)


# ----------------------------
# PDF -> fragments
# ----------------------------

def read_fragments(data: bytes) -> List[Fragment]:
    """
    Positioned words from every page.
    pdfplumber first; if it cannot open the file, pypdf text with line/word order as coordinates.
    """
    try:
        return _fragments_pdfplumber(data)
    except Exception as e:
        logger.warning("pdfplumber failed, falling back to pypdf reason=%s", e)

    try:
        return _fragments_pypdf(data)
    except Exception as e:
        raise ParseStructure(f"PDF text extraction failed: {e}") from e


def _fragments_pdfplumber(data: bytes) -> List[Fragment]:
    out: List[Fragment] = []
    with pdfplumber.open(BytesIO(data)) as pdf:
        for pno, page in enumerate(pdf.pages):
            for w in page.extract_words() or []:
                out.append(Fragment(text=str(w["text"]), x=float(w["x0"]), y=float(w["top"]), page=pno))
    return out


def _fragments_pypdf(data: bytes) -> List[Fragment]:
    out: List[Fragment] = []
    reader = PdfReader(BytesIO(data))
    for pno, page in enumerate(reader.pages):
        text = page.extract_text() or ""
        for line_no, line in enumerate(text.splitlines()):
            for i, word in enumerate(line.split()):
                out.append(Fragment(text=word, x=float(i), y=float(line_no), page=pno))
    return out


# ----------------------------
# Row clustering
# ----------------------------

def cluster_rows(fragments: Sequence[Fragment], precision: int = 0) -> List[List[Fragment]]:
    rows: Dict[Tuple[int, float], List[Fragment]] = {}
    for f in fragments:
        key = (f.page, round(f.y, precision))
        rows.setdefault(key, []).append(f)
    return [sorted(rows[k], key=lambda f: f.x) for k in sorted(rows)]


def row_text(row: Sequence[Fragment]) -> str:
    return " ".join(f.text for f in row)


def _name_rx(name: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(name).replace(r"\ ", r"\s+") + r"(?!\w)")


def country_variants(country: str) -> List[str]:
    return COUNTRY_NAMES.get(country, [country])


def find_country_row(
    rows: Sequence[Sequence[Fragment]],
    country: str,
    min_numbers: int = MIN_ROW_NUMBERS,
) -> Sequence[Fragment]:
    patterns = [_name_rx(n) for n in country_variants(country)]
    for row in rows:
        text = row_text(row)
        if not any(p.search(text) for p in patterns):
            continue
        n = len(unsigned_ints(tokenize(text)))
        if n >= min_numbers:
            return row
        logger.debug("country name in row without data country=%s ints=%d text=%r", country, n, text[:120])
    raise CountryNotFound(f"No data row for {country} (variants: {', '.join(country_variants(country))})")


def row_counts(row: Sequence[Fragment], country: str) -> Tuple[List[int], int]:
    """Ordered absolute counts from a country row, plus how many placeholder dashes were stripped."""
    text = row_text(row)
    for name in sorted(country_variants(country), key=len, reverse=True):
        text = _name_rx(name).sub(" ", text)
    tokens = tokenize(text)
    dashes = sum(1 for t in tokens if t.kind == DASH)
    return unsigned_ints(tokens), dashes


def choose_layout(count: int, layouts: Sequence[SlotLayout] = DEFAULT_LAYOUTS) -> SlotLayout:
    for layout in layouts:
        if layout.expected_tokens == count:
            return layout
    fitting = [l for l in layouts if l.expected_tokens <= count]
    if not fitting:
        minimum = min(l.expected_tokens for l in layouts)
        raise InsufficientData(f"Found {count} values, need at least {minimum}")
    return max(fitting, key=lambda l: l.expected_tokens)


def extract_country_counts(
    fragments: Sequence[Fragment],
    country: str,
    layouts: Sequence[SlotLayout] = DEFAULT_LAYOUTS,
    min_row_numbers: int = MIN_ROW_NUMBERS,
) -> Dict[FuelCode, int]:
    rows = cluster_rows(fragments)
    row = find_country_row(rows, country, min_numbers=min_row_numbers)
    values, dashes = row_counts(row, country)
    layout = choose_layout(len(values), layouts)
    logger.info(
        "country row parsed country=%s values=%d dashes=%d layout=%s",
        country,
        len(values),
        dashes,
        layout.version,
    )
    return layout.assign(values)
