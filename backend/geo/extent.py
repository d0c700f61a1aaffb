from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from layers.types import FeatureCollection, Geometry


@dataclass(frozen=True)
class Extent:
    """
    Axis-aligned bounding rectangle in lon/lat degrees.

    Convention used throughout this repo:
    - minX (lon), minY (lat), maxX, maxY
    An "empty" extent is represented by `None`, never by a zero-size rectangle.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(f"Inverted extent: {self.as_list()}")

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def as_list(self) -> list[float]:
        return [self.min_x, self.min_y, self.max_x, self.max_y]


def iter_positions(coords: Any) -> Iterator[tuple[float, float]]:
    """
    Walk arbitrarily nested coordinate arrays and yield every finite (x, y) pair.

    A position is any sequence whose first two items are numbers; anything else
    that is a sequence is descended into. Non-finite and non-numeric leaves are skipped.
    """
    if not isinstance(coords, (list, tuple)) or not coords:
        return
    x, y = (coords[0], coords[1]) if len(coords) >= 2 else (None, None)
    if _is_number(x) and _is_number(y):
        if math.isfinite(x) and math.isfinite(y):
            yield (float(x), float(y))
        return
    for c in coords:
        yield from iter_positions(c)


def iter_geometry_positions(geometry: Geometry | None) -> Iterator[tuple[float, float]]:
    if geometry is None:
        return
    if geometry.type == "GeometryCollection":
        for g in geometry.geometries:
            yield from iter_geometry_positions(g)
        return
    yield from iter_positions(geometry.coordinates)


def iter_collection_positions(collection: FeatureCollection) -> Iterator[tuple[float, float]]:
    for feature in collection.features:
        yield from iter_geometry_positions(feature.geometry)


def extent_of_positions(positions: Iterable[tuple[float, float]]) -> Extent | None:
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for x, y in positions:
        if x < min_x:
            min_x = x
        if y < min_y:
            min_y = y
        if x > max_x:
            max_x = x
        if y > max_y:
            max_y = y
    if not all(math.isfinite(v) for v in (min_x, min_y, max_x, max_y)):
        return None
    return Extent(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y)


def extent(collection: FeatureCollection) -> Extent | None:
    """
    Tightest extent over every coordinate in the collection.

    Features without a usable geometry are ignored. Returns None when the collection
    has no finite coordinate at all.
    """
    return extent_of_positions(iter_collection_positions(collection))


def merge_extents(a: Extent | None, b: Extent | None) -> Extent | None:
    """
    Pairwise union. `None` is the identity: merging with it returns the other operand.
    """
    if a is None:
        return b
    if b is None:
        return a
    return Extent(
        min_x=min(a.min_x, b.min_x),
        min_y=min(a.min_y, b.min_y),
        max_x=max(a.max_x, b.max_x),
        max_y=max(a.max_y, b.max_y),
    )


def merge_all(extents: Iterable[Extent | None]) -> Extent | None:
    out: Extent | None = None
    for e in extents:
        out = merge_extents(out, e)
    return out


def max_abs_coordinate(collection: FeatureCollection) -> tuple[float, float] | None:
    """
    Largest absolute value seen on each axis, or None for an empty collection.
    """
    e = extent(collection)
    if e is None:
        return None
    return (
        max(abs(e.min_x), abs(e.max_x)),
        max(abs(e.min_y), abs(e.max_y)),
    )


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)
