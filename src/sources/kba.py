from __future__ import annotations

import logging
from typing import List

from src.extractors.spreadsheet import ColumnRule, ResidualRule, extract_total_row, read_sheet_rows
from src.sources.base import MonthResult, PerMonthAdapter
from src.taxonomy.fuel import FuelCode
from src.taxonomy.records import CanonicalRecord
from src.utils.errors import CollectionError, NotFound, ParseStructure
from src.utils.http_client import DocumentFetcher, FetchedDocument
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

KBA_BASE_URL = "https://www.kba.de/SharedDocs/Downloads/DE/Statistik/Fahrzeuge"
KBA_BLOB_PARAMS = "?__blob=publicationFile&v=2"

# FZ10 (brands/models), FZ7 (fuel types), FZ13 (environment), FZ (generic)
KBA_SERIES = [("FZ10", "fz10"), ("FZ7", "fz7"), ("FZ13", "fz13"), ("FZ", "fz")]

TOTAL = "TOTAL"
ALL_HYBRIDS = "ALL_HYBRIDS"

# Order matters: first matching rule claims the header cell
KBA_COLUMN_RULES = [
    ColumnRule(TOTAL, ("insgesamt",)),
    ColumnRule(FuelCode.DIESEL.value, ("mit dieselantrieb",), exclude=("hybrid",)),
    ColumnRule(FuelCode.BEV.value, ("mit elektroantrieb",)),
    ColumnRule(FuelCode.PHEV.value, ("plug-in-hybridantrieb",), exclude=("benzin", "diesel")),
    ColumnRule(FuelCode.HYBRID.value, ("hybridantrieb", "ohne plug")),
    ColumnRule(ALL_HYBRIDS, ("mit hybridantrieb",)),
]

KBA_FUEL_KEYS = {
    FuelCode.DIESEL.value: FuelCode.DIESEL,
    FuelCode.BEV.value: FuelCode.BEV,
    FuelCode.PHEV.value: FuelCode.PHEV,
    FuelCode.HYBRID.value: FuelCode.HYBRID,
}

# Petrol has no column of its own: whatever the total leaves after the known drivetrains
KBA_GASOLINE_RESIDUAL = ResidualRule(
    code=FuelCode.GASOLINE,
    total_key=TOTAL,
    subtract_keys=(FuelCode.DIESEL.value, ALL_HYBRIDS, FuelCode.BEV.value),
    substitutes={ALL_HYBRIDS: (FuelCode.PHEV.value, FuelCode.HYBRID.value)},
)

KBA_HEADER_MARKER = "insgesamt"
KBA_TOTAL_MARKER = "NEUZULASSUNGEN INSGESAMT"
# Data sheets are named "FZ10.1" or "FZ 10.1"
KBA_SHEET_PREFERENCE = r"fz\s*10"


class KbaAdapter(PerMonthAdapter):
    """German monthly statistical workbooks; national grand-total row with a derived petrol bucket."""

    name = "kba"
    brand = "Alle Marken"
    model = "Alle Modelle"

    def __init__(self, fetcher: DocumentFetcher, base_url: str = KBA_BASE_URL) -> None:
        super().__init__(fetcher)
        self.base_url = base_url

    def candidates(self, month: MonthKey, country: str) -> List[str]:
        return [
            f"{self.base_url}/{folder}/{prefix}_{month.underscore_code}.xlsx{KBA_BLOB_PARAMS}"
            for folder, prefix in KBA_SERIES
        ]

    def extract(self, doc: FetchedDocument, month: MonthKey, country: str) -> CanonicalRecord:
        sheet, rows = read_sheet_rows(doc.content, prefer=KBA_SHEET_PREFERENCE)
        totals = extract_total_row(
            rows,
            header_marker=KBA_HEADER_MARKER,
            total_marker=KBA_TOTAL_MARKER,
            rules=KBA_COLUMN_RULES,
            fuel_keys=KBA_FUEL_KEYS,
            residual=KBA_GASOLINE_RESIDUAL,
        )
        logger.debug("kba sheet=%s totals=%s", sheet, {c.value: v for c, v in totals.items()})
        return CanonicalRecord.from_totals(month, country, totals, brand=self.brand, model=self.model)

    def collect_month(self, country: str, month: MonthKey) -> MonthResult:
        """
        Each candidate is a different statistic; some download fine but carry no fuel columns.
        A candidate that yields an empty record does not stop the search.
        """
        attempted: List[str] = []
        last_error: CollectionError | None = None
        for url in self.candidates(month, country):
            attempted.append(url)
            try:
                doc = self.fetcher.fetch([url])
                record = self.extract(doc, month, country)
            except CollectionError as e:
                logger.debug("kba candidate failed url=%s reason=%s", url, e)
                last_error = e
                continue
            if record.is_empty:
                logger.info("kba candidate had no fuel data url=%s", url)
                last_error = ParseStructure(f"No fuel columns in {url}")
                continue
            return MonthResult.from_document(month, record, doc)

        if isinstance(last_error, ParseStructure):
            raise last_error
        raise NotFound(f"No usable KBA workbook for {month.code}", attempted)
