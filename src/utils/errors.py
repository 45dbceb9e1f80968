from __future__ import annotations

from typing import Iterable


class CollectionError(Exception):
    """Base class for failures scoped to one (country, month) collection attempt."""


class NotFound(CollectionError):
    """Every URL candidate for a period failed."""

    def __init__(self, message: str, attempted: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.attempted = list(attempted)


class ParseStructure(CollectionError):
    """Expected header, row or dimension metadata is absent."""


class InsufficientData(CollectionError):
    """Fewer data points than the minimum needed to populate every fuel slot."""


class CountryNotFound(CollectionError):
    """Target country is absent from a multi-country document."""


class TransientNetwork(CollectionError):
    """Connection reset or timeout."""


class StorageFailure(CollectionError):
    """Cannot create the output directory or write the record file."""


class UnknownZoneError(KeyError):
    def __init__(self, zone: str, available: Iterable[str]) -> None:
        self.zone = zone
        self.available = sorted(available)
        super().__init__(zone)

    def __str__(self) -> str:
        return f"Zone '{self.zone}' not found in zones config. Available zones: {', '.join(self.available)}"
