from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NevRatioEstimator:
    """
    Heuristic market total from NEV volume: total ~= nev / ratio.

    Used only when an article gives no total. The ratio is an observed market share,
    not a published figure, so every estimate is logged and the estimator can be disabled.
    """

    ratio: float = 0.40
    min_nev: int = 500_000
    enabled: bool = True

    def __post_init__(self) -> None:
        if not 0 < self.ratio <= 1:
            raise ValueError(f"ratio must be in (0, 1], got {self.ratio}")

    def estimate_total(self, nev: Optional[int]) -> Optional[int]:
        if not self.enabled or not nev or nev <= self.min_nev:
            return None
        total = int(round(nev / self.ratio))
        logger.info("estimated total from NEV nev=%d ratio=%.2f total=%d", nev, self.ratio, total)
        return total
