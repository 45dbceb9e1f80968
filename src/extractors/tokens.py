from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass
from typing import Any, List, Optional

# Token kinds
INT = "INT"            # 12,345 or 12345
DECIMAL = "DECIMAL"    # 12.3 (period-over-period ratios print with a decimal)
PERCENT = "PERCENT"    # 12.3% / +4%
SIGNED = "SIGNED"      # +12 / -4.5 / −4.5 (deltas, never absolute counts)
DASH = "DASH"          # placeholder for missing data
WORD = "WORD"

PLACEHOLDERS = {"-", "–", "—", "‒", "−", "n.a.", "n/a", "na", "…"}

_INT_RX = re.compile(r"^(?:\d{1,3}(?:[,  ]\d{3})+|\d+)$")
_DECIMAL_RX = re.compile(r"^\d{1,3}(?:,\d{3})*\.\d+$|^\d+\.\d+$")
_SIGNED_RX = re.compile(r"^[+\-−]\s?\d")

# Cell grammar: thousands separated by comma, dot, space or narrow spaces
_CELL_INT_RX = re.compile(r"^\d{1,3}(?:[,.\s  ]\d{3})+$|^\d+$")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    value: Optional[int] = None


def is_placeholder(text: str) -> bool:
    return str(text or "").strip().lower() in PLACEHOLDERS


def classify(piece: str) -> Token:
    s = piece.strip()
    if is_placeholder(s):
        return Token(DASH, s)
    if "%" in s and any(ch.isdigit() for ch in s):
        return Token(PERCENT, s)
    if _SIGNED_RX.match(s):
        return Token(SIGNED, s)
    if _DECIMAL_RX.match(s):
        return Token(DECIMAL, s)
    if _INT_RX.match(s):
        return Token(INT, s, int(re.sub(r"[^\d]", "", s)))
    return Token(WORD, s)


def tokenize(text: str) -> List[Token]:
    return [classify(p) for p in str(text or "").split() if p.strip()]


def unsigned_ints(tokens: List[Token]) -> List[int]:
    return [t.value for t in tokens if t.kind == INT and t.value is not None]


def parse_int(cell: Any) -> Optional[int]:
    """
    Integer from a spreadsheet/CSV cell. Numeric cells pass through (integral floats only);
    strings may carry thousands separators. Signed, decimal or empty text gives None.
    """
    if cell is None:
        return None
    if isinstance(cell, bool):
        return None
    if isinstance(cell, numbers.Integral):
        return int(cell)
    if isinstance(cell, numbers.Real):
        f = float(cell)
        if math.isnan(f) or not f.is_integer():
            return None
        return int(f)
    s = str(cell).strip()
    if not s:
        return None
    if _CELL_INT_RX.match(s):
        return int(re.sub(r"[^\d]", "", s))
    return None
