"""Types for the geospatial commands: units, coordinates and radius searches."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from .pipeline import to_redis_args
from .protocol import (
    ErrorKind,
    RedisError,
    Value,
    as_float,
    as_list,
    as_str,
)

__all__ = [
    "Unit",
    "Coord",
    "RadiusOrder",
    "RadiusOptions",
    "RadiusSearchResult",
]

T = TypeVar("T")


def _incompatible(value: Any, detail: str) -> RedisError:
    return RedisError(
        ErrorKind.TYPE_ERROR,
        "Response was of incompatible type",
        f"{detail!r} (response was {value!r})",
    )


class Unit(Enum):
    """Distance units understood by GEODIST and GEORADIUS."""

    METERS = "m"
    KILOMETERS = "km"
    MILES = "mi"
    FEET = "ft"

    def to_redis_args(self) -> list[bytes]:
        """Return the unit as a single command argument."""
        return [self.value.encode("ascii")]


@dataclass(frozen=True)
class Coord(Generic[T]):
    """A (longitude, latitude) pair."""

    longitude: T
    latitude: T

    @staticmethod
    def lon_lat(longitude: T, latitude: T) -> Coord[T]:
        """Create a coordinate from longitude and latitude."""
        return Coord(longitude, latitude)

    @classmethod
    def from_redis_value(cls, value: Value) -> Coord[float]:
        """Read a coordinate from a two-item reply, as floats."""
        items = [as_float(item) for item in as_list(value)]
        if len(items) != 2:
            raise _incompatible(value, "Expect a pair of numbers")
        longitude, latitude = items
        return cls(longitude, latitude)

    def to_redis_args(self) -> list[bytes]:
        """Return longitude and latitude as two arguments."""
        return to_redis_args(self.longitude) + to_redis_args(self.latitude)


class RadiusOrder(Enum):
    """How GEORADIUS results are sorted."""

    UNSORTED = "unsorted"
    ASC = "asc"
    DESC = "desc"


class RadiusOptions:
    """Options for GEORADIUS and GEORADIUSBYMEMBER, built by chaining."""

    def __init__(self) -> None:
        self._with_coord = False
        self._with_dist = False
        self._count: int | None = None
        self._order = RadiusOrder.UNSORTED
        self._store: list[bytes] | None = None
        self._store_dist: list[bytes] | None = None

    def limit(self, n: int) -> RadiusOptions:
        """Limit the results to the first ``n`` matching items."""
        self._count = n
        return self

    def with_dist(self) -> RadiusOptions:
        """Return each item's distance from the center."""
        self._with_dist = True
        return self

    def with_coord(self) -> RadiusOptions:
        """Return each item's coordinates."""
        self._with_coord = True
        return self

    def order(self, order: RadiusOrder) -> RadiusOptions:
        """Sort the returned items."""
        self._order = order
        return self

    def store(self, key: Any) -> RadiusOptions:
        """Store the results in a sorted set at ``key`` instead of returning them."""
        self._store = to_redis_args(key)
        return self

    def store_dist(self, key: Any) -> RadiusOptions:
        """Store the results at ``key`` with their distance as score."""
        self._store_dist = to_redis_args(key)
        return self

    def to_redis_args(self) -> list[bytes]:
        """Return the options as command arguments."""
        out: list[bytes] = []
        if self._with_coord:
            out.append(b"WITHCOORD")
        if self._with_dist:
            out.append(b"WITHDIST")
        if self._count is not None:
            out += [b"COUNT", str(self._count).encode()]
        if self._order is RadiusOrder.ASC:
            out.append(b"ASC")
        elif self._order is RadiusOrder.DESC:
            out.append(b"DESC")
        if self._store is not None:
            out.append(b"STORE")
            out += self._store
        if self._store_dist is not None:
            out.append(b"STOREDIST")
            out += self._store_dist
        return out


@dataclass
class RadiusSearchResult:
    """One item found by a radius search."""

    name: str
    coord: Coord[float] | None = None
    dist: float | None = None

    @classmethod
    def from_redis_value(cls, value: Value) -> RadiusSearchResult:
        """Read a result that is either a bare name or name, dist and coord."""
        try:
            return cls(as_str(value))
        except RedisError:
            pass
        if isinstance(value, list):
            result = cls._from_items(value)
            if result is not None:
                return result
        raise _incompatible(value, "Response type not RadiusSearchResult compatible.")

    @classmethod
    def _from_items(cls, items: list) -> RadiusSearchResult | None:
        rest = iter(items)
        try:
            name = as_str(next(rest))
        except (StopIteration, RedisError):
            return None
        current = next(rest, _END)
        dist = None
        if current is not _END:
            try:
                dist = as_float(current)
            except RedisError:
                pass
            else:
                current = next(rest, _END)
        coord = None
        if current is not _END:
            try:
                coord = Coord.from_redis_value(current)
            except RedisError:
                pass
        return cls(name, coord, dist)


_END = object()