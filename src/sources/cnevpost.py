from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Optional, Sequence, Set

from src.extractors.estimation import NevRatioEstimator
from src.extractors.headlines import (
    HeadlineFigures,
    extract_headline_figures,
    is_headline_link,
    period_from_article_url,
)
from src.extractors.spreadsheet import extract_period_rows, read_sheet_rows
from src.sources.base import MonthResult, SourceAdapter
from src.sources.html import extract_links, visible_text
from src.taxonomy.fuel import FuelCode, get_taxonomy
from src.taxonomy.records import CanonicalRecord
from src.utils.errors import CollectionError, InsufficientData, NotFound
from src.utils.http_client import DocumentFetcher
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

CNEVPOST_TAG_URL = "https://cnevpost.com/tag/caam/"
MAX_TAG_PAGES = 5
MIN_LINKS_PER_PAGE = 3
MAX_ARTICLES = 50

# Monthly industry workbook; first column is YYYY-MM or YYYY/MM
CAAM_PERIOD_RX = re.compile(r"^\d{4}[-/]\d{2}$")


def cn_totals(figures: HeadlineFigures) -> Dict[FuelCode, int]:
    """
    BEV and PHEV as published; FOSSIL = total - NEV when the total exceeds NEV.
    A NEV figure with no BEV/PHEV split is booked entirely to BEV.
    """
    out: Dict[FuelCode, int] = {}
    if figures.bev:
        out[FuelCode.BEV] = figures.bev
    if figures.phev:
        out[FuelCode.PHEV] = figures.phev
    if figures.total and figures.nev and figures.total > figures.nev:
        out[FuelCode.FOSSIL] = figures.total - figures.nev
    if figures.nev and not figures.bev and not figures.phev:
        out[FuelCode.BEV] = figures.nev
    return out


class CnEvPostAdapter(SourceAdapter):
    """
    China monthly market figures relayed as news articles (tag listing -> article -> headline numbers).
    With `workbook_url` set, reads the industry association workbook instead.
    """

    name = "cnevpost"
    brand = "所有品牌"
    model = "所有车型"

    def __init__(
        self,
        fetcher: DocumentFetcher,
        tag_url: str = CNEVPOST_TAG_URL,
        estimator: Optional[NevRatioEstimator] = None,
        workbook_url: Optional[str] = None,
        max_pages: int = MAX_TAG_PAGES,
    ) -> None:
        super().__init__(fetcher)
        self.tag_url = tag_url
        self.estimator = estimator or NevRatioEstimator()
        self.workbook_url = workbook_url
        self.max_pages = max_pages

    def tag_page_url(self, page: int) -> str:
        return self.tag_url if page == 1 else f"{self.tag_url.rstrip('/')}/page/{page}/"

    def list_articles(self) -> List[str]:
        urls: List[str] = []
        seen: Set[str] = set()
        for page in range(1, self.max_pages + 1):
            if page > 1:
                self.fetcher.pause()
            list_url = self.tag_page_url(page)
            try:
                doc = self.fetcher.fetch([list_url])
            except NotFound as e:
                logger.info("tag listing ended page=%d reason=%s", page, e)
                break
            matches = [u for u, text in extract_links(doc.text, doc.url) if is_headline_link(text)]
            for u in matches:
                if u not in seen:
                    seen.add(u)
                    urls.append(u)
            logger.info("tag page=%d matching_links=%d", page, len(matches))
            if len(matches) < MIN_LINKS_PER_PAGE:
                break
        return urls[:MAX_ARTICLES]

    def read_article(self, url: str, month: MonthKey, country: str) -> MonthResult:
        doc = self.fetcher.fetch([url])
        figures = extract_headline_figures(visible_text(doc.text))
        if not figures.has_any:
            raise InsufficientData(f"No NEV/BEV/PHEV figures in {url}")
        if not figures.total:
            estimated = self.estimator.estimate_total(figures.nev)
            if estimated is not None:
                figures.total = estimated
                figures.total_estimated = True

        record = CanonicalRecord.from_totals(month, country, cn_totals(figures), brand=self.brand, model=self.model)
        logger.info(
            "article parsed month=%s nev=%s bev=%s phev=%s total=%s estimated=%s",
            month.code,
            figures.nev,
            figures.bev,
            figures.phev,
            figures.total,
            figures.total_estimated,
        )
        return MonthResult.from_document(month, record, doc)

    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        if not months:
            return
        if self.workbook_url:
            yield from self._collect_workbook(country, months)
            return

        wanted = set(months)
        done: Set[MonthKey] = set()
        for url in self.list_articles():
            month = period_from_article_url(url)
            if month is None:
                logger.debug("no period in article url=%s", url)
                continue
            if month not in wanted or month in done:
                continue
            self.fetcher.pause()
            try:
                result = self.read_article(url, month, country)
            except CollectionError as e:
                logger.warning("article failed month=%s url=%s reason=%s", month.code, url, e)
                result = MonthResult(month=month, error=e)
            else:
                done.add(month)
            yield result

    def _collect_workbook(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        doc = self.fetcher.fetch([self.workbook_url])
        _, rows = read_sheet_rows(doc.content)
        records = extract_period_rows(
            rows,
            get_taxonomy("CN"),
            country,
            CAAM_PERIOD_RX,
            brand=self.brand,
            model=self.model,
        )
        wanted = set(months)
        for rec in records:
            if rec.month_key in wanted:
                yield MonthResult.from_document(rec.month_key, rec, doc)
