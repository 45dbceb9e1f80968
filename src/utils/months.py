from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

MONTH_NAMES_EN: List[str] = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

# Publisher URLs use the unaccented forms (fevrier, aout, decembre)
MONTH_NAMES_FR: List[str] = [
    "janvier", "fevrier", "mars", "avril", "mai", "juin",
    "juillet", "aout", "septembre", "octobre", "novembre", "decembre",
]

_PERIOD_RXS = [
    re.compile(r"^(?P<y>\d{4})[-_/](?P<m>\d{1,2})$"),
    re.compile(r"^(?P<y>\d{4})M(?P<m>\d{2})$", flags=re.IGNORECASE),
]


@dataclass(frozen=True, order=True)
class MonthKey:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")

    @property
    def code(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def ssb_code(self) -> str:
        return f"{self.year:04d}M{self.month:02d}"

    @property
    def underscore_code(self) -> str:
        return f"{self.year:04d}_{self.month:02d}"

    @property
    def last_day(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    def month_name(self, lang: str = "en") -> str:
        if lang == "fr":
            return MONTH_NAMES_FR[self.month - 1]
        if lang == "en":
            return MONTH_NAMES_EN[self.month - 1]
        raise ValueError(f"unsupported month-name language: {lang}")

    def previous(self) -> "MonthKey":
        if self.month == 1:
            return MonthKey(self.year - 1, 12)
        return MonthKey(self.year, self.month - 1)

    def next(self) -> "MonthKey":
        if self.month == 12:
            return MonthKey(self.year + 1, 1)
        return MonthKey(self.year, self.month + 1)

    @classmethod
    def parse(cls, text: str) -> "MonthKey":
        """Parse `YYYY-MM`, `YYYY_MM`, `YYYY/MM` or the statistical `YYYYMnn` form."""
        s = str(text or "").strip()
        for rx in _PERIOD_RXS:
            m = rx.match(s)
            if m:
                return cls(int(m.group("y")), int(m.group("m")))
        raise ValueError(f"unrecognized period: {text!r}")

    @classmethod
    def try_parse(cls, text: str) -> Optional["MonthKey"]:
        try:
            return cls.parse(text)
        except ValueError:
            return None

    @classmethod
    def of(cls, d: date) -> "MonthKey":
        return cls(d.year, d.month)

    def __str__(self) -> str:
        return self.code


def months_since(start_year: int, today: Optional[date] = None) -> List[MonthKey]:
    """January of `start_year` through the current month, inclusive and gapless."""
    today = today or date.today()
    out: List[MonthKey] = []
    for year in range(start_year, today.year + 1):
        end_month = today.month if year == today.year else 12
        for month in range(1, end_month + 1):
            out.append(MonthKey(year, month))
    return out
