from __future__ import annotations

import logging
from typing import Iterator, Sequence

from src.extractors.delimited import aggregate_national, read_zip_csv, records_from_buckets
from src.sources.base import MonthResult, SourceAdapter
from src.taxonomy.fuel import get_taxonomy
from src.utils.http_client import DocumentFetcher
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

SCB_ZIP_URL = "https://www.statistikdatabasen.scb.se/Resources/PX/bulk/ssd/en/TAB3277_en.zip"

SCB_REGION_FIELD = "region"
SCB_NATIONAL_REGION = "00 Sweden"
SCB_PERIOD_FIELD = "month"  # 2006M01
SCB_FUEL_FIELD = "fuel"
SCB_VALUE_FIELD = "New registered passenger cars, number"


class ScbAdapter(SourceAdapter):
    """Swedish statistics bulk download: one zipped CSV with the full history by region and fuel."""

    name = "scb"
    brand = "Toutes marques"
    model = "Tous modèles"

    def __init__(self, fetcher: DocumentFetcher, url: str = SCB_ZIP_URL) -> None:
        super().__init__(fetcher)
        self.url = url
        self.taxonomy = get_taxonomy("SE")

    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        if not months:
            return
        doc = self.fetcher.fetch([self.url])
        df = read_zip_csv(doc.content)
        logger.info("scb csv rows=%d columns=%s", len(df), list(df.columns))

        buckets = aggregate_national(
            df,
            region_field=SCB_REGION_FIELD,
            region_match=SCB_NATIONAL_REGION,
            period_field=SCB_PERIOD_FIELD,
            fuel_field=SCB_FUEL_FIELD,
            value_field=SCB_VALUE_FIELD,
            taxonomy=self.taxonomy,
        )
        for rec in records_from_buckets(buckets, country, brand=self.brand, model=self.model, months=months):
            yield MonthResult.from_document(rec.month_key, rec, doc)
