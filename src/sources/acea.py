from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from src.extractors.positional_pdf import (
    COUNTRY_NAMES,
    DEFAULT_LAYOUTS,
    SlotLayout,
    extract_country_counts,
    read_fragments,
)
from src.sources.base import PerMonthAdapter
from src.taxonomy.records import CanonicalRecord
from src.utils.http_client import DocumentFetcher, FetchedDocument
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

ACEA_BASE_URL = "https://www.acea.auto/files/"

# Naming has drifted between years; tried in order
ACEA_URL_TEMPLATES = [
    "{base}Press_release_car_registrations_{name}_{year}.pdf",
    "{base}Press_release_car_registrations-{name}_{year}.pdf",
    "{base}Press_release_car_registrations_{name}-{year}.pdf",
    "{base}Press_release_car_registrations_{name}{year}.pdf",
]

ACEA_COUNTRIES = sorted(COUNTRY_NAMES)


class AceaAdapter(PerMonthAdapter):
    """Monthly multi-country press-release PDF; one row per country, fuel pairs by column position."""

    name = "acea"
    brand = "Toutes marques"
    model = "Tous modèles"

    def __init__(
        self,
        fetcher: DocumentFetcher,
        country: Optional[str] = None,
        layouts: Sequence[SlotLayout] = DEFAULT_LAYOUTS,
        base_url: str = ACEA_BASE_URL,
    ) -> None:
        super().__init__(fetcher)
        self.country = country
        self.layouts = tuple(layouts)
        self.base_url = base_url

    def candidates(self, month: MonthKey, country: str) -> List[str]:
        name = month.month_name("en")
        return [t.format(base=self.base_url, name=name, year=month.year) for t in ACEA_URL_TEMPLATES]

    def extract(self, doc: FetchedDocument, month: MonthKey, country: str) -> CanonicalRecord:
        target = self.country or country
        fragments = read_fragments(doc.content)
        counts = extract_country_counts(fragments, target, layouts=self.layouts)
        # all six positional slots are kept, zeros included
        return CanonicalRecord.from_totals(
            month,
            target,
            counts,
            brand=self.brand,
            model=self.model,
            keep_zero=True,
        )
