from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


class FuelCode(str, Enum):
    BEV = "BEV"
    PHEV = "PHEV"
    HYBRID = "HYBRID"
    DIESEL = "DIESEL"
    GASOLINE = "GASOLINE"
    LPG_CNG_OTHER = "LPG_CNG_OTHER"
    FOSSIL = "FOSSIL"  # diesel + gasoline, for sources that cannot split them
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value


CANONICAL_ORDER: List[FuelCode] = list(FuelCode)


def is_mapped(code: FuelCode) -> bool:
    return code not in (FuelCode.OTHER, FuelCode.UNKNOWN)


def clean_label(label: object) -> str:
    return re.sub(r"\s+", " ", str(label)).strip().lower()


class FuelTaxonomy:
    """
    Alias table for one source vocabulary.

    normalize() resolution order:
      1) exact alias match (after lowercasing + whitespace collapse)
      2) longest alias contained in the label; equal lengths keep the first registered
      3) OTHER when nothing matches, UNKNOWN when the label is empty
    Longest-wins keeps "hybride rechargeable" from being shadowed by "hybride".
    """

    def __init__(self, namespace: str, aliases: Mapping[FuelCode, Iterable[str]]) -> None:
        self.namespace = namespace
        self._aliases: List[Tuple[str, FuelCode]] = []
        for code, names in aliases.items():
            for name in names:
                alias = clean_label(name)
                if alias:
                    self._aliases.append((alias, FuelCode(code)))

    @property
    def aliases(self) -> List[Tuple[str, FuelCode]]:
        return list(self._aliases)

    def normalize(self, label: Optional[object]) -> FuelCode:
        if label is None:
            return FuelCode.UNKNOWN
        clean = clean_label(label)
        if not clean:
            return FuelCode.UNKNOWN

        for alias, code in self._aliases:
            if clean == alias:
                return code

        best: Optional[FuelCode] = None
        best_len = 0
        for alias, code in self._aliases:
            if alias in clean and len(alias) > best_len:
                best, best_len = code, len(alias)
        return best or FuelCode.OTHER


# ----------------------------
# Per-country alias tables
# ----------------------------

FRENCH_FUEL_MAP: Dict[FuelCode, List[str]] = {
    FuelCode.DIESEL: ["Gazole (thermique)", "Gazole", "Diesel"],
    FuelCode.GASOLINE: ["Essence (thermique)", "Essence"],
    FuelCode.HYBRID: [
        "Hybride",
        "hybride gazole non rechargeable",
        "hybride essence non rechargeable",
        "gazole (y compris hybrides non rechargeables)",
        "essence (y compris hybrides non rechargeables)",
    ],
    FuelCode.PHEV: ["hybride rechargeable"],
    FuelCode.BEV: ["Electrique", "Électrique", "Electric", "BEV"],
    FuelCode.OTHER: ["Gaz & ND", "LPG", "CNG"],
}

SWEDISH_FUEL_MAP: Dict[FuelCode, List[str]] = {
    FuelCode.DIESEL: ["diesel"],
    FuelCode.GASOLINE: ["petrol"],
    FuelCode.HYBRID: ["electric hybrid"],
    FuelCode.PHEV: ["plug-in hybrid"],
    FuelCode.BEV: ["electricity"],
    FuelCode.OTHER: ["gas/gas flex", "ethanol/ethanol flexifuel", "other fuels"],
}

DUTCH_FUEL_MAP: Dict[FuelCode, List[str]] = {
    FuelCode.BEV: ["Elektriciteit"],
    FuelCode.GASOLINE: ["Benzine"],
    FuelCode.DIESEL: ["Diesel"],
    FuelCode.LPG_CNG_OTHER: ["LPG", "CNG", "LNG", "Waterstof", "Alcohol"],
}

CHINESE_FUEL_MAP: Dict[FuelCode, List[str]] = {
    FuelCode.BEV: ["纯电动", "纯电动汽车", "BEV"],
    FuelCode.PHEV: ["插电式混合动力", "插电式混合动力汽车", "PHEV"],
    FuelCode.LPG_CNG_OTHER: ["燃料电池", "燃料电池汽车", "FCEV"],
    FuelCode.HYBRID: ["混合动力", "HEV"],
    FuelCode.GASOLINE: ["汽油", "汽油车"],
    FuelCode.DIESEL: ["柴油", "柴油车"],
}

TAXONOMIES: Dict[str, FuelTaxonomy] = {
    "FR": FuelTaxonomy("FR", FRENCH_FUEL_MAP),
    "SE": FuelTaxonomy("SE", SWEDISH_FUEL_MAP),
    "NL": FuelTaxonomy("NL", DUTCH_FUEL_MAP),
    "CN": FuelTaxonomy("CN", CHINESE_FUEL_MAP),
}


def get_taxonomy(namespace: str) -> FuelTaxonomy:
    try:
        return TAXONOMIES[namespace]
    except KeyError:
        raise KeyError(f"No fuel taxonomy registered for namespace: {namespace}") from None


def normalize(namespace: str, label: Optional[object]) -> FuelCode:
    return get_taxonomy(namespace).normalize(label)
