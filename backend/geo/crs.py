from __future__ import annotations

import math
from dataclasses import replace
from functools import lru_cache
from typing import Any

from loguru import logger
from pyproj import Transformer

from geo.extent import max_abs_coordinate
from layers.types import Feature, FeatureCollection, Geometry

# Geographic degrees never exceed 180; anything above this is taken to be meters.
PROJECTED_MAGNITUDE_THRESHOLD = 400.0
DEFAULT_PROJECTED_CRS = "EPSG:3857"


@lru_cache(maxsize=8)
def transformer_to_4326(source_crs: str) -> Transformer:
    return Transformer.from_crs(source_crs, "EPSG:4326", always_xy=True)


def looks_projected(
    collection: FeatureCollection,
    *,
    threshold: float = PROJECTED_MAGNITUDE_THRESHOLD,
) -> bool:
    """
    Magnitude heuristic: a collection is "projected" when any coordinate exceeds `threshold`.

    This is not driven by declared CRS metadata. Small-extent projected data near the
    projection origin, or corrupt geographic data with huge values, are misclassified.
    """
    mags = max_abs_coordinate(collection)
    if mags is None:
        return False
    return max(mags) > threshold


def normalize_collection(
    collection: FeatureCollection,
    *,
    threshold: float = PROJECTED_MAGNITUDE_THRESHOLD,
    source_crs: str = DEFAULT_PROJECTED_CRS,
) -> FeatureCollection:
    """
    Return the collection in lon/lat degrees.

    Geographic input is returned as-is (collections are immutable, so sharing is safe);
    projected input is copied with every position passed through the inverse projection.
    """
    if not looks_projected(collection, threshold=threshold):
        return collection

    t = transformer_to_4326(source_crs)
    logger.info(
        f"Reprojecting {len(collection)} features from {source_crs} to EPSG:4326"
    )
    return FeatureCollection(
        features=tuple(_reproject_feature(f, t) for f in collection.features),
        name=collection.name,
    )


def _reproject_feature(feature: Feature, t: Transformer) -> Feature:
    if feature.geometry is None:
        return feature
    return replace(feature, geometry=_reproject_geometry(feature.geometry, t))


def _reproject_geometry(geometry: Geometry, t: Transformer) -> Geometry | None:
    """
    Reproject one geometry; None when any position lands outside lon/lat range
    (input beyond the projection's domain), the same as a malformed geometry.
    """
    if geometry.type == "GeometryCollection":
        members = tuple(
            g for g in (_reproject_geometry(m, t) for m in geometry.geometries) if g is not None
        )
        return replace(geometry, geometries=members) if members else None
    coords = _reproject_coords(geometry.coordinates, t)
    if coords is None:
        return None
    return replace(geometry, coordinates=coords)


def _reproject_coords(coords: Any, t: Transformer) -> Any:
    if not isinstance(coords, tuple) or not coords:
        return coords
    if isinstance(coords[0], (int, float)):
        lon, lat = t.transform(coords[0], coords[1])
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return None
        if abs(lon) > 180.0 or abs(lat) > 90.0:
            return None
        return (float(lon), float(lat))
    out = []
    for c in coords:
        r = _reproject_coords(c, t)
        if r is None:
            return None
        out.append(r)
    return tuple(out)
