from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from src.taxonomy.records import CanonicalRecord
from src.utils.errors import StorageFailure
from src.utils.months import MonthKey

logger = logging.getLogger(__name__)

RECORDS_SUBDIR = "ev"
MANIFEST_NAME = "manifest.jsonl"


@dataclass
class FetchRecord:
    fetched_at_utc: str
    month: str
    url: str
    sha256: str | None
    bytes: int | None
    status: str  # "persisted" | "skipped" | "failed"
    error: str | None = None


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class CanonicalStore:
    """
    File-per-month record store: <root>/<COUNTRY>/ev/YYYY-MM.json

    Files are write-once. Re-collecting a month means deleting its file out of band.
    The existence of a file is the only collection state; nothing is cached here.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def country_dir(self, country: str) -> Path:
        return self.root / country / RECORDS_SUBDIR

    def path_for(self, country: str, month: MonthKey) -> Path:
        return self.country_dir(country) / f"{month.code}.json"

    def ensure_country(self, country: str) -> Path:
        d = self.country_dir(country)
        try:
            d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFailure(f"Cannot create {d}: {e}") from e
        return d

    def exists(self, country: str, month: MonthKey) -> bool:
        return self.path_for(country, month).exists()

    def filter_missing(self, country: str, months: Iterable[MonthKey]) -> List[MonthKey]:
        self.ensure_country(country)
        return [m for m in months if not self.exists(country, m)]

    def months(self, country: str) -> List[MonthKey]:
        d = self.country_dir(country)
        if not d.exists():
            return []
        out: List[MonthKey] = []
        for p in d.glob("*.json"):
            mk = MonthKey.try_parse(p.stem)
            if mk is not None:
                out.append(mk)
        return sorted(out)

    def read(self, country: str, month: MonthKey) -> Optional[CanonicalRecord]:
        p = self.path_for(country, month)
        if not p.exists():
            return None
        with p.open("r", encoding="utf-8") as f:
            return CanonicalRecord.from_json_dict(json.load(f))

    def write(self, country: str, record: CanonicalRecord) -> bool:
        """
        Persist a record. Returns False (and leaves the file alone) if the month is already stored.
        The payload is fully serialized before the single temp-file write + rename,
        so a crash never leaves a partial YYYY-MM.json behind.
        """
        if record.is_empty:
            raise ValueError(f"Refusing to persist empty record for {country} {record.month_key.code}")

        out_dir = self.ensure_country(country)
        out_path = self.path_for(country, record.month_key)
        if out_path.exists():
            logger.info("record exists, not overwriting country=%s month=%s", country, record.month_key.code)
            return False

        payload = json.dumps(record.to_json_dict(), ensure_ascii=False, indent=2)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=out_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, out_path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageFailure(f"Cannot write {out_path}: {e}") from e
        return True

    def append_fetch_manifest(self, country: str, rec: FetchRecord) -> None:
        p = self.root / country / MANIFEST_NAME
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with p.open("a", encoding="utf-8") as f:
                f.write(json.dumps(asdict(rec), ensure_ascii=False) + "\n")
        except OSError as e:
            raise StorageFailure(f"Cannot append manifest {p}: {e}") from e
