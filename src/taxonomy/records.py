from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from src.taxonomy.fuel import CANONICAL_ORDER, FuelCode
from src.utils.months import MonthKey

ALL_BRANDS = "ALL"
ALL_MODELS = "ALL"
RECORD_TYPE = "all"


@dataclass(frozen=True)
class FuelEntry:
    total: int
    fuel_code: FuelCode
    brand: str = ALL_BRANDS
    model: str = ALL_MODELS

    def __post_init__(self) -> None:
        if self.total < 0:
            raise ValueError(f"negative total for {self.fuel_code}: {self.total}")

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "marque": self.brand,
            "modele": self.model,
            "total": int(self.total),
            "energie": self.fuel_code.value,
        }


@dataclass
class CanonicalRecord:
    """One month of harmonized registration counts for one country."""

    year: int
    month: int
    region: str
    entries: List[FuelEntry] = field(default_factory=list)
    type: str = RECORD_TYPE

    @property
    def month_key(self) -> MonthKey:
        return MonthKey(self.year, self.month)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def totals(self) -> Dict[FuelCode, int]:
        out: Dict[FuelCode, int] = {}
        for e in self.entries:
            out[e.fuel_code] = out.get(e.fuel_code, 0) + e.total
        return out

    @classmethod
    def from_totals(
        cls,
        month: MonthKey,
        region: str,
        totals: Mapping[FuelCode, int],
        *,
        brand: str = ALL_BRANDS,
        model: str = ALL_MODELS,
        keep_zero: bool = False,
    ) -> "CanonicalRecord":
        """Entries in canonical code order; one entry per code, non-positive totals dropped."""
        entries: List[FuelEntry] = []
        for code in CANONICAL_ORDER:
            if code not in totals:
                continue
            val = int(totals[code])
            if val < 0 or (val == 0 and not keep_zero):
                continue
            entries.append(FuelEntry(total=val, fuel_code=code, brand=brand, model=model))
        return cls(year=month.year, month=month.month, region=region, entries=entries)

    def to_json_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "region": self.region,
            "type": self.type,
            "data": [e.to_json_dict() for e in self.entries],
        }

    @classmethod
    def from_json_dict(cls, obj: Mapping[str, Any]) -> "CanonicalRecord":
        entries = [
            FuelEntry(
                total=int(d["total"]),
                fuel_code=FuelCode(d["energie"]),
                brand=str(d.get("marque", ALL_BRANDS)),
                model=str(d.get("modele", ALL_MODELS)),
            )
            for d in obj.get("data", []) or []
        ]
        return cls(
            year=int(obj["year"]),
            month=int(obj["month"]),
            region=str(obj.get("region", "")),
            entries=entries,
            type=str(obj.get("type", RECORD_TYPE)),
        )
