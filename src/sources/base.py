from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence

from src.taxonomy.records import ALL_BRANDS, ALL_MODELS, CanonicalRecord
from src.utils.errors import CollectionError
from src.utils.http_client import DocumentFetcher, FetchedDocument
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)


@dataclass
class MonthResult:
    """Outcome of one (country, month) attempt: a record to persist, or the error that stopped it."""

    month: MonthKey
    record: Optional[CanonicalRecord] = None
    error: Optional[CollectionError] = None
    source_url: Optional[str] = None
    sha256: Optional[str] = None
    bytes: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.record is not None and self.error is None

    @classmethod
    def from_document(cls, month: MonthKey, record: CanonicalRecord, doc: FetchedDocument) -> "MonthResult":
        return cls(month=month, record=record, source_url=doc.url, sha256=doc.sha256, bytes=len(doc.content))


class SourceAdapter(ABC):
    """
    One publisher's data for one or more countries.

    collect() yields a MonthResult per requested month it attempted. Bulk sources (one document
    covering many months) yield only the requested months the document contains, and raise a
    CollectionError when the document itself cannot be obtained.
    """

    name = "source"
    brand = ALL_BRANDS
    model = ALL_MODELS

    def __init__(self, fetcher: DocumentFetcher) -> None:
        self.fetcher = fetcher

    @abstractmethod
    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        raise NotImplementedError


class PerMonthAdapter(SourceAdapter):
    """
    Template for sources queried month by month.

    Document sources supply candidates() and extract(); API sources override collect_month().
    A CollectionError fails only the month it was raised for. Any other exception is logged
    with its traceback and fails that month too.
    """

    def candidates(self, month: MonthKey, country: str) -> List[str]:
        raise NotImplementedError

    def extract(self, doc: FetchedDocument, month: MonthKey, country: str) -> CanonicalRecord:
        raise NotImplementedError

    def collect_month(self, country: str, month: MonthKey) -> MonthResult:
        doc = self.fetcher.fetch(self.candidates(month, country))
        record = self.extract(doc, month, country)
        return MonthResult.from_document(month, record, doc)

    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        for i, month in enumerate(months):
            if i:
                self.fetcher.pause()
            try:
                result = self.collect_month(country, month)
            except CollectionError as e:
                logger.warning(
                    "month failed source=%s country=%s month=%s error=%s reason=%s",
                    self.name,
                    country,
                    month.code,
                    type(e).__name__,
                    e,
                )
                result = MonthResult(month=month, error=e)
            except Exception as e:
                logger.exception("month crashed source=%s country=%s month=%s", self.name, country, month.code)
                err = CollectionError(f"{type(e).__name__}: {e}")
                err.__cause__ = e
                result = MonthResult(month=month, error=err)
            yield result
