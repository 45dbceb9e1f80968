from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Sequence

from src.sources.base import MonthResult, PerMonthAdapter
from src.taxonomy.fuel import FuelCode, get_taxonomy
from src.taxonomy.records import CanonicalRecord
from src.utils.errors import CollectionError, InsufficientData, TransientNetwork
from src.utils.http_client import DocumentFetcher
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

RDW_BASE_URL = "https://opendata.rdw.nl/resource"
RDW_REGISTRATIONS = "m9d7-ebf2"  # registered vehicles (plate, first admission date, kind)
RDW_FUELS = "8ys7-d773"  # fuel rows per plate; multi-fuel vehicles have several

PAGE_LIMIT = 50_000
BATCH_SIZE = 500
MAX_WORKERS = 3
FUEL_ROWS_PER_BATCH = 4 * BATCH_SIZE


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _quote(plate: str) -> str:
    return "'" + str(plate).replace("'", "''") + "'"


class RdwAdapter(PerMonthAdapter):
    """
    Dutch vehicle register (Socrata API). No monthly document exists: a month is built by
    listing the plates first admitted that month, then counting their fuel rows in batches.
    """

    name = "rdw"

    def __init__(
        self,
        fetcher: DocumentFetcher,
        base_url: str = RDW_BASE_URL,
        batch_size: int = BATCH_SIZE,
        max_workers: int = MAX_WORKERS,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(fetcher)
        self.base_url = base_url
        self.batch_size = batch_size
        self.max_workers = max_workers
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep
        self.taxonomy = get_taxonomy("NL")

    @property
    def registrations_url(self) -> str:
        return f"{self.base_url}/{RDW_REGISTRATIONS}.json"

    @property
    def fuels_url(self) -> str:
        return f"{self.base_url}/{RDW_FUELS}.json"

    # ----------------------------
    # API steps
    # ----------------------------

    def list_plates(self, month: MonthKey) -> List[str]:
        start = f"{month.code}-01T00:00:00"
        end = f"{month.code}-{month.last_day:02d}T23:59:59"
        where = f"datum_eerste_toelating_dt between '{start}' and '{end}' AND voertuigsoort='Personenauto'"

        plates: List[str] = []
        offset = 0
        while True:
            page = self.fetcher.fetch_json(
                self.registrations_url,
                params={"$select": "kenteken", "$where": where, "$limit": PAGE_LIMIT, "$offset": offset},
            )
            if not page:
                break
            plates.extend(str(row["kenteken"]) for row in page if row.get("kenteken"))
            if len(page) < PAGE_LIMIT:
                break
            offset += PAGE_LIMIT
            self.fetcher.pause()
        return plates

    def _fetch_batch(self, plates: Sequence[str]) -> List[Dict[str, Any]]:
        params = {
            "$select": "kenteken,brandstof_omschrijving",
            "$where": f"kenteken in ({','.join(_quote(p) for p in plates)})",
            "$limit": FUEL_ROWS_PER_BATCH,
        }
        try:
            return self.fetcher.fetch_json(self.fuels_url, params=params, retry=False) or []
        except CollectionError as e:
            logger.warning("fuel batch failed, retrying once plates=%d reason=%s", len(plates), e)
            self._sleep(self.retry_delay_seconds)
        try:
            return self.fetcher.fetch_json(self.fuels_url, params=params, retry=False) or []
        except CollectionError as e:
            raise TransientNetwork(f"Fuel batch of {len(plates)} plates failed twice: {e}") from e

    def count_fuels(self, plates: Sequence[str]) -> Dict[FuelCode, int]:
        batches = chunked(plates, self.batch_size)
        counts: Dict[FuelCode, int] = {}
        # Workers share the fetcher's requests.Session; each batch is an independent GET,
        # and the session's urllib3 pool hands every thread its own connection.
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = []
            for i, batch in enumerate(batches):
                if i:
                    self.fetcher.pause()
                futures.append(pool.submit(self._fetch_batch, batch))
            for future in futures:
                for row in future.result():
                    code = self.taxonomy.normalize(row.get("brandstof_omschrijving"))
                    counts[code] = counts.get(code, 0) + 1
        logger.info(
            "fuel rows counted plates=%d batches=%d counts=%s",
            len(plates),
            len(batches),
            {c.value: n for c, n in counts.items()},
        )
        return counts

    def collect_month(self, country: str, month: MonthKey) -> MonthResult:
        plates = self.list_plates(month)
        if not plates:
            raise InsufficientData(f"No registrations listed for {month.code}")
        logger.info("plates listed month=%s count=%d", month.code, len(plates))

        counts = self.count_fuels(plates)
        record = CanonicalRecord.from_totals(month, country, counts, brand=self.brand, model=self.model)
        if record.is_empty:
            raise InsufficientData(f"No fuel rows for {month.code}")
        return MonthResult(month=month, record=record, source_url=self.registrations_url)
