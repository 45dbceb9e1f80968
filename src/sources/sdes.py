from __future__ import annotations

import logging
import re
from typing import Iterator, Optional, Sequence, Tuple

from src.extractors.spreadsheet import extract_period_rows, read_sheet_rows
from src.sources.base import MonthResult, SourceAdapter
from src.sources.html import extract_links
from src.taxonomy.fuel import get_taxonomy
from src.utils.errors import NotFound, ParseStructure
from src.utils.http_client import DocumentFetcher
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

SDES_SITE = "https://www.statistiques.developpement-durable.gouv.fr"
SDES_PAGE_TEMPLATE = (
    SDES_SITE + "/motorisations-des-vehicules-legers-neufs-emissions-de-co2-et-bonus-ecologique-{name}-{year}"
)

# Each landing page carries a workbook with the whole monthly history
SDES_LOOKBACK_MONTHS = 24
SDES_PERIOD_RX = re.compile(r"^\d{4}_\d{2}$")


def pick_data_link(links: Sequence[Tuple[str, str]]) -> Optional[str]:
    """Workbook download link; a link whose text mentions "données" beats the first plausible one."""
    plausible = [
        (url, text)
        for url, text in links
        if ("/media/" in url or url.lower().endswith(".xlsx")) and ("/download" in url or ".xlsx" in url.lower())
    ]
    for url, text in plausible:
        if "données" in text.lower():
            return url
    return plausible[0][0] if plausible else None


class SdesAdapter(SourceAdapter):
    """French ministry statistics: monthly landing page linking a cumulative workbook."""

    name = "sdes"
    brand = "Toutes marques"
    model = "Tous modèles"

    def __init__(self, fetcher: DocumentFetcher, lookback_months: int = SDES_LOOKBACK_MONTHS) -> None:
        super().__init__(fetcher)
        self.lookback_months = lookback_months
        self.taxonomy = get_taxonomy("FR")

    def page_url(self, month: MonthKey) -> str:
        return SDES_PAGE_TEMPLATE.format(name=month.month_name("fr"), year=month.year)

    def find_landing_page(self, newest: MonthKey) -> Tuple[str, str]:
        attempted = []
        month = newest
        for i in range(self.lookback_months):
            url = self.page_url(month)
            attempted.append(url)
            if i:
                self.fetcher.pause()
            try:
                doc = self.fetcher.fetch([url])
            except NotFound:
                logger.debug("no landing page month=%s", month.code)
                month = month.previous()
                continue
            logger.info("landing page found month=%s url=%s", month.code, doc.url)
            return doc.url, doc.text
        raise NotFound(f"No SDES landing page in the {self.lookback_months} months up to {newest.code}", attempted)

    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        if not months:
            return
        page_url, html = self.find_landing_page(max(months))

        data_url = pick_data_link(extract_links(html, page_url))
        if data_url is None:
            raise ParseStructure(f"No workbook link on {page_url}")

        self.fetcher.pause()
        doc = self.fetcher.fetch([data_url])
        _, rows = read_sheet_rows(doc.content)
        records = extract_period_rows(
            rows,
            self.taxonomy,
            country,
            SDES_PERIOD_RX,
            brand=self.brand,
            model=self.model,
        )

        wanted = set(months)
        found = 0
        for rec in records:
            if rec.month_key not in wanted:
                continue
            found += 1
            yield MonthResult.from_document(rec.month_key, rec, doc)
        logger.info("sdes workbook rows=%d requested_found=%d requested=%d", len(records), found, len(wanted))
