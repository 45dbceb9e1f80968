from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Sequence

from src.extractors.jsonstat import parse_jsonstat
from src.sources.base import MonthResult, SourceAdapter
from src.taxonomy.fuel import FuelCode
from src.taxonomy.records import CanonicalRecord
from src.utils.errors import CollectionError, InsufficientData
from src.utils.http_client import DocumentFetcher
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

SSB_TABLE_URL = "https://data.ssb.no/api/v0/en/table/14020"
SSB_BATCH_SIZE = 36

SERIES_DIM = "DrivstoffType"
PERIOD_DIM = "Tid"

# 20 lumps petrol and diesel together; 21 includes plug-in hybrids
SSB_FUEL_CODES: Dict[str, FuelCode] = {
    "19": FuelCode.BEV,
    "20": FuelCode.FOSSIL,
    "21": FuelCode.HYBRID,
    "6": FuelCode.OTHER,
}


def build_query(period_codes: Sequence[str]) -> Dict[str, Any]:
    def item(code: str, values: List[str]) -> Dict[str, Any]:
        return {"code": code, "selection": {"filter": "item", "values": values}}

    return {
        "query": [
            item("TypeRegistrering", ["N"]),  # new vehicles
            item(SERIES_DIM, list(SSB_FUEL_CODES)),
            item("ContentsCode", ["Personbiler"]),
            item(PERIOD_DIM, list(period_codes)),
        ],
        "response": {"format": "json-stat2"},
    }


def totals_from_series(series: Mapping[str, float]) -> Dict[FuelCode, int]:
    out: Dict[FuelCode, int] = {}
    for code, value in series.items():
        fuel = SSB_FUEL_CODES.get(str(code))
        if fuel is None or not value or value <= 0:
            continue
        out[fuel] = out.get(fuel, 0) + int(value)
    return out


class SsbAdapter(SourceAdapter):
    """Statistics Norway table 14020 through the PxWeb JSON-stat API, queried in batches of months."""

    name = "ssb"
    brand = "Toutes marques"
    model = "Tous modèles"

    def __init__(self, fetcher: DocumentFetcher, url: str = SSB_TABLE_URL, batch_size: int = SSB_BATCH_SIZE) -> None:
        super().__init__(fetcher)
        self.url = url
        self.batch_size = batch_size

    def query(self, months: Sequence[MonthKey]) -> Dict[str, Dict[str, float]]:
        response = self.fetcher.fetch_json(self.url, method="POST", body=build_query([m.ssb_code for m in months]))
        return parse_jsonstat(response, SERIES_DIM, PERIOD_DIM)

    def _result(self, country: str, month: MonthKey, cube: Mapping[str, Mapping[str, float]]) -> MonthResult:
        series = cube.get(month.ssb_code)
        if series is None:
            return MonthResult(month=month, error=InsufficientData(f"{month.ssb_code} absent from response"))
        record = CanonicalRecord.from_totals(
            month, country, totals_from_series(series), brand=self.brand, model=self.model
        )
        if record.is_empty:
            return MonthResult(month=month, error=InsufficientData(f"No positive values for {month.ssb_code}"))
        return MonthResult(month=month, record=record, source_url=self.url)

    def collect(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        batches = [list(months[i:i + self.batch_size]) for i in range(0, len(months), self.batch_size)]
        for b, batch in enumerate(batches):
            if b:
                self.fetcher.pause()
            try:
                cube = self.query(batch)
            except CollectionError as e:
                # one unpublished month invalidates the whole query; fall back to single months
                logger.warning(
                    "batch failed, fetching months individually first=%s size=%d reason=%s",
                    batch[0].ssb_code,
                    len(batch),
                    e,
                )
                yield from self._collect_individually(country, batch)
                continue

            logger.info("ssb batch %d/%d months=%d", b + 1, len(batches), len(batch))
            for month in batch:
                yield self._result(country, month, cube)

    def _collect_individually(self, country: str, months: Sequence[MonthKey]) -> Iterator[MonthResult]:
        for month in months:
            self.fetcher.pause()
            try:
                cube = self.query([month])
            except CollectionError as e:
                logger.warning("month failed source=ssb month=%s reason=%s", month.code, e)
                yield MonthResult(month=month, error=e)
                continue
            yield self._result(country, month, cube)
