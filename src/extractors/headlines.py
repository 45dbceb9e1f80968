from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional

from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

# =============================================================================
# Headline figures from monthly market articles (deterministic regex grammar)
#
#   "NEV sales came in at 1.71 million units"      -> 1_710_000
#   "NEV sales reached 1,307,000 units"            -> 1_307_000
#   "BEV sales ... 850 units" (thousands shorthand) -> 850_000
#   "Total vehicle sales in November were 3.429 million units"
#
# Values below THOUSANDS_CUTOFF without "million" are read as thousands of units.
# =============================================================================

THOUSANDS_CUTOFF = 10_000

MONTH_ABBR: Dict[str, int] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_ALT = r"jan|feb|mar|apr|may|jun|jul|aug|sept?|oct|nov|dec"

NUM = r"(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)"
_GAP = r"[^\d]{0,160}?"

NEV_RX = re.compile(r"NEV sales" + _GAP + NUM + r"\s*(million\s+)?units", re.IGNORECASE)
BEV_RX = re.compile(r"BEV sales" + _GAP + NUM + r"\s*(million\s+)?units", re.IGNORECASE)
PHEV_RX = re.compile(r"PHEV sales" + _GAP + NUM + r"\s*(million\s+)?units", re.IGNORECASE)

TOTAL_RXS = [
    re.compile(
        r"(?:all|total|overall)\s+(?:vehicle|auto|passenger vehicle)\s+sales" + _GAP + NUM + r"\s*(million\s+)?units",
        re.IGNORECASE,
    ),
    re.compile(
        r"(?:vehicle|auto|passenger vehicle)\s+sales[^\d]{0,80}?(?:totaled|reached|were|hit|stood at)"
        + _GAP + NUM + r"\s*(million\s+)?units",
        re.IGNORECASE,
    ),
]

ARTICLE_MONTH_RX = re.compile(r"-(" + _MONTH_ALT + r")-(\d{4})(?:-|/|$)", re.IGNORECASE)
ARTICLE_PUB_RX = re.compile(r"/(\d{4})/(\d{2})/\d{2}/")


@dataclass
class HeadlineFigures:
    nev: Optional[int] = None
    bev: Optional[int] = None
    phev: Optional[int] = None
    total: Optional[int] = None
    total_estimated: bool = False

    @property
    def has_any(self) -> bool:
        return bool(self.nev or self.bev or self.phev)


def scale_figure(raw: str, million: bool) -> int:
    num = float(raw.replace(",", ""))
    if million:
        return int(round(num * 1_000_000))
    if num < THOUSANDS_CUTOFF:
        return int(round(num * 1000))
    return int(round(num))


def _first(rxs, text: str) -> Optional[int]:
    for rx in rxs:
        m = rx.search(text)
        if m:
            return scale_figure(m.group(1), bool(m.group(2)))
    return None


def extract_headline_figures(text: str) -> HeadlineFigures:
    t = re.sub(r"\s+", " ", (text or "").replace(" ", " "))
    figures = HeadlineFigures(
        nev=_first([NEV_RX], t),
        bev=_first([BEV_RX], t),
        phev=_first([PHEV_RX], t),
        total=_first(TOTAL_RXS, t),
    )
    logger.debug(
        "headline figures nev=%s bev=%s phev=%s total=%s",
        figures.nev,
        figures.bev,
        figures.phev,
        figures.total,
    )
    return figures


def is_headline_link(text: str) -> bool:
    """Link text of a monthly market-figures article."""
    low = (text or "").strip().lower()
    has_nev = "nev sales" in low or "china nev" in low
    has_data = "caam" in low or "data" in low or "million" in low
    has_month = re.search(_MONTH_ALT, low) is not None
    return has_nev and has_data and has_month


def period_from_article_url(url: str) -> Optional[MonthKey]:
    """
    Reporting month from an article slug like `/2026/01/14/china-nev-sales-dec-2025-caam/`.

    December figures are published in January; a slug year at or after the publication
    year is moved back to the year before publication.
    """
    m = ARTICLE_MONTH_RX.search(url or "")
    if not m:
        return None
    month = MONTH_ABBR[m.group(1).lower()]
    year = int(m.group(2))

    pub = ARTICLE_PUB_RX.search(url)
    if pub and month == 12:
        pub_year, pub_month = int(pub.group(1)), int(pub.group(2))
        if pub_year > year or (pub_month == 1 and pub_year == year):
            year = pub_year - 1
    return MonthKey(year, month)
