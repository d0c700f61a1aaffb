from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping, Sequence

from loguru import logger

from layers.errors import MalformedCollection, SourceError, SourceFetchError, SourceUnavailable
from layers.loaders import parse_feature_collection
from layers.transport import DefaultTransport, Transport
from layers.types import FeatureCollection


@dataclass(frozen=True)
class LoadResult:
    """
    Outcome of resolving one dataset key: exactly one of `collection` / `error` is set.
    """

    key: str
    collection: FeatureCollection | None = None
    error: SourceUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.collection is not None


class SourceResolver:
    """
    First-valid-wins fetch over an ordered list of candidate locations.

    Candidates are tried strictly one after another; the first one that yields a valid
    FeatureCollection is returned and later candidates are never touched.
    """

    def __init__(self, transport: Transport | None = None):
        self.transport = transport or DefaultTransport()

    async def resolve(self, key: str, candidates: Sequence[str]) -> FeatureCollection:
        if not candidates:
            raise ValueError(f"Dataset '{key}' has no candidate locations")

        causes: list[SourceError] = []
        for i, location in enumerate(candidates):
            try:
                collection = await self._attempt(location)
            except SourceError as e:
                causes.append(e)
                logger.warning(
                    f"[{key}] candidate {i + 1}/{len(candidates)} failed, {e}"
                )
                continue
            if causes:
                logger.info(
                    f"[{key}] loaded from fallback candidate {i + 1}/{len(candidates)}: {location}"
                )
            return collection

        err = SourceUnavailable(key, attempts=len(candidates), causes=causes)
        logger.warning(str(err))
        raise err

    async def _attempt(self, location: str) -> FeatureCollection:
        try:
            text = await self.transport.fetch(location)
        except SourceError:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Third-party transports may raise anything; keep failures typed.
            raise SourceFetchError(location, f"{type(e).__name__}: {e}") from e
        if not isinstance(text, str):
            raise MalformedCollection(location, "transport returned non-text content")
        try:
            return parse_feature_collection(text, location=location)
        except SourceError:
            raise
        except Exception as e:
            raise MalformedCollection(location, f"{type(e).__name__}: {e}") from e

    async def resolve_result(self, key: str, candidates: Sequence[str]) -> LoadResult:
        try:
            return LoadResult(key=key, collection=await self.resolve(key, candidates))
        except SourceUnavailable as e:
            return LoadResult(key=key, error=e)

    async def resolve_all(
        self, sources: Mapping[str, Sequence[str]]
    ) -> dict[str, LoadResult]:
        """
        Resolve several dataset keys concurrently and wait for all of them.

        Per-key failures come back as `LoadResult.error`; they never cancel siblings.
        """
        keys = list(sources.keys())
        results = await asyncio.gather(
            *(self.resolve_result(k, sources[k]) for k in keys)
        )
        return dict(zip(keys, results))
