from __future__ import annotations


class SourceError(Exception):
    """Base class for dataset ingestion failures."""


class SourceFetchError(SourceError):
    """The transport could not deliver content for a location."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Fetch failed for {location}: {reason}")


class MalformedCollection(SourceError):
    """Content arrived but is not a GeoJSON FeatureCollection."""

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Not a FeatureCollection ({reason}): {location}")


class SourceUnavailable(SourceError):
    """Every candidate location for a dataset key failed."""

    def __init__(self, key: str, attempts: int, causes: list[SourceError] | None = None):
        self.key = key
        self.attempts = attempts
        self.causes = list(causes or [])
        super().__init__(
            f"Dataset '{key}' unavailable after {attempts} candidate(s)"
        )
