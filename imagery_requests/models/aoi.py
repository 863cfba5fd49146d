"""Data model for a requested Area of Interest (AOI).

A ``GeoAOI`` is the footprint an imagery request targets: a closed
WGS 84 ring drawn on the map, the client-computed area in square
kilometres, and the client-computed center point.

The area is trusted as submitted and stored as-is.  The server computes
a geodesic area only to log a plausibility warning when the two differ
noticeably; it never replaces the client value.

All coordinates are ``(longitude, latitude)`` in EPSG:4326.
"""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from typing import Any

from imagery_requests.core.exceptions import InvalidGeometry

logger = logging.getLogger("imagery_requests.models.aoi")

# Minimum ring length: 3 distinct vertices + closure
MIN_RING_POINTS = 4
MIN_DISTINCT_VERTICES = 3

# Relative difference above which the client area is logged as suspicious
AREA_DISCREPANCY_RATIO = 0.1

SQ_METRES_PER_SQ_KM = 1_000_000.0

GEOJSON_POLYGON = "Polygon"


class AOIKind(enum.Enum):
    """Drawing tool used to create the AOI."""

    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """A WGS 84 point with explicit ``lat`` / ``lng`` naming."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            msg = f"AOI center must be finite, got lat={self.lat} lng={self.lng}"
            raise InvalidGeometry(msg, fields={"aoi_center": msg})
        if not -90.0 <= self.lat <= 90.0:
            msg = f"Latitude must be between -90 and 90, got {self.lat}"
            raise InvalidGeometry(msg, fields={"aoi_center.lat": msg})
        if not -180.0 <= self.lng <= 180.0:
            msg = f"Longitude must be between -180 and 180, got {self.lng}"
            raise InvalidGeometry(msg, fields={"aoi_center.lng": msg})

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Display envelope of a ring in degrees."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, point: GeoPoint) -> bool:
        """Whether *point* lies inside or on the envelope."""
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east

    def to_dict(self) -> dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


def bounding_box(ring: list[tuple[float, float]] | tuple[tuple[float, float], ...]) -> BoundingBox:
    """Compute the ``{north, south, east, west}`` envelope of a ring.

    Pure function used for display only; it performs no validation
    beyond requiring a non-empty ring.

    Raises:
        InvalidGeometry: If *ring* is empty.
    """
    if not ring:
        msg = "Cannot compute a bounding box for an empty ring"
        raise InvalidGeometry(msg)
    lngs = [c[0] for c in ring]
    lats = [c[1] for c in ring]
    return BoundingBox(north=max(lats), south=min(lats), east=max(lngs), west=min(lngs))


@dataclass(frozen=True, slots=True)
class GeoAOI:
    """A validated, immutable area of interest.

    Attributes:
        kind: Drawing tool that produced the ring.
        coordinates: Closed ring of ``(lon, lat)`` tuples (first == last).
        area_km2: Client-computed area in square kilometres (> 0).
        center: Client-computed center point.
    """

    kind: AOIKind
    coordinates: tuple[tuple[float, float], ...]
    area_km2: float
    center: GeoPoint

    def __post_init__(self) -> None:
        if not isinstance(self.kind, AOIKind):
            msg = f"AOI type must be one of: {', '.join(k.value for k in AOIKind)}"
            raise InvalidGeometry(msg, fields={"aoi_type": msg})
        _validate_ring(self.coordinates)
        if not (math.isfinite(self.area_km2) and self.area_km2 > 0):
            msg = f"AOI area must be a positive number, got {self.area_km2}"
            raise InvalidGeometry(msg, fields={"aoi_area_km2": msg})

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        kind: str | AOIKind,
        coordinates: list[Any],
        area_km2: float,
        center: dict[str, Any] | GeoPoint,
    ) -> GeoAOI:
        """Build a ``GeoAOI`` from loosely typed values.

        Raises:
            InvalidGeometry: On any geometric or type violation.
        """
        try:
            aoi_kind = kind if isinstance(kind, AOIKind) else AOIKind(str(kind).strip())
        except ValueError:
            msg = f"AOI type must be one of: {', '.join(k.value for k in AOIKind)}"
            raise InvalidGeometry(msg, fields={"aoi_type": msg}) from None

        ring = _coerce_ring(coordinates)

        if isinstance(center, GeoPoint):
            point = center
        else:
            try:
                point = GeoPoint(lat=float(center["lat"]), lng=float(center["lng"]))
            except (KeyError, TypeError, ValueError):
                msg = "AOI center must have lat and lng as numbers"
                raise InvalidGeometry(msg, fields={"aoi_center": msg}) from None

        try:
            area = float(area_km2)
        except (TypeError, ValueError):
            msg = f"AOI area must be a positive number, got {area_km2!r}"
            raise InvalidGeometry(msg, fields={"aoi_area_km2": msg}) from None

        aoi = cls(kind=aoi_kind, coordinates=ring, area_km2=area, center=point)
        aoi.log_sanity_warnings()
        return aoi

    @classmethod
    def from_geojson(
        cls,
        kind: str | AOIKind,
        geometry: dict[str, Any],
        area_km2: float,
        center: dict[str, Any] | GeoPoint,
    ) -> GeoAOI:
        """Build a ``GeoAOI`` from a GeoJSON ``Polygon`` geometry.

        Only the exterior ring (``coordinates[0]``) is used.

        Raises:
            InvalidGeometry: If *geometry* is not a GeoJSON Polygon.
        """
        if not isinstance(geometry, dict):
            msg = "AOI coordinates must be a valid GeoJSON object"
            raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})
        if geometry.get("type") != GEOJSON_POLYGON:
            msg = f"AOI coordinates type must be Polygon, got {geometry.get('type')!r}"
            raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})
        rings = geometry.get("coordinates")
        if not isinstance(rings, list) or not rings:
            msg = "AOI coordinates must contain at least one ring"
            raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})
        return cls.create(kind, rings[0], area_km2, center)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def bounding_box(self) -> BoundingBox:
        """Display envelope of the ring."""
        return bounding_box(self.coordinates)

    @property
    def distinct_vertex_count(self) -> int:
        """Number of distinct vertices (closure point excluded)."""
        return len(set(self.coordinates[:-1]))

    def geodesic_area_km2(self) -> float:
        """Server-side geodesic area on the WGS 84 ellipsoid.

        Used only for the plausibility warning; never stored.
        """
        from pyproj import Geod

        geod = Geod(ellps="WGS84")
        lons = [c[0] for c in self.coordinates]
        lats = [c[1] for c in self.coordinates]
        area_m2, _perimeter = geod.polygon_area_perimeter(lons, lats)
        return abs(area_m2) / SQ_METRES_PER_SQ_KM

    def sanity_warnings(self) -> list[str]:
        """Best-effort checks that are reported but never enforced."""
        from shapely.geometry import Polygon

        warnings: list[str] = []

        if not self.bounding_box.contains(self.center):
            warnings.append(
                f"center ({self.center.lat:.6f}, {self.center.lng:.6f}) "
                "lies outside the ring's bounding envelope"
            )

        if not Polygon(self.coordinates).is_valid:
            warnings.append("ring is self-intersecting")

        computed = self.geodesic_area_km2()
        if computed > 0 and abs(self.area_km2 - computed) / computed > AREA_DISCREPANCY_RATIO:
            warnings.append(
                f"provided area {self.area_km2:.2f} km2 differs from computed "
                f"area {computed:.2f} km2"
            )

        return warnings

    def log_sanity_warnings(self) -> None:
        for warning in self.sanity_warnings():
            logger.warning("AOI sanity check | kind=%s | %s", self.kind.value, warning)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_geojson(self) -> dict[str, object]:
        """GeoJSON ``Polygon`` geometry for the ring."""
        return {
            "type": GEOJSON_POLYGON,
            "coordinates": [[list(c) for c in self.coordinates]],
        }

    def to_dict(self) -> dict[str, object]:
        """Serialise to the wire/storage shape."""
        return {
            "aoi_type": self.kind.value,
            "aoi_coordinates": self.to_geojson(),
            "aoi_area_km2": self.area_km2,
            "aoi_center": self.center.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GeoAOI:
        """Deserialise a stored AOI without re-running sanity warnings.

        Raises:
            InvalidGeometry: If the stored shape violates an invariant.
        """
        geometry = data.get("aoi_coordinates", {})
        if not isinstance(geometry, dict) or not geometry.get("coordinates"):
            msg = "Stored AOI is missing aoi_coordinates"
            raise InvalidGeometry(msg)
        center = data.get("aoi_center", {})
        try:
            return cls(
                kind=AOIKind(str(data.get("aoi_type", ""))),
                coordinates=_coerce_ring(geometry["coordinates"][0]),
                area_km2=float(data.get("aoi_area_km2", 0.0)),
                center=GeoPoint(lat=float(center["lat"]), lng=float(center["lng"])),
            )
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Stored AOI is malformed: {exc}"
            raise InvalidGeometry(msg) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _coerce_ring(raw: Any) -> tuple[tuple[float, float], ...]:
    """Convert ``[[lng, lat], ...]`` into a tuple of float pairs.

    Raises:
        InvalidGeometry: If any entry is not a numeric ``[lng, lat]`` pair.
    """
    if not isinstance(raw, (list, tuple)):
        msg = "AOI ring must be a list of [lng, lat] pairs"
        raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})

    ring: list[tuple[float, float]] = []
    for index, coord in enumerate(raw):
        if (
            not isinstance(coord, (list, tuple))
            or len(coord) != 2
            or isinstance(coord[0], bool)
            or isinstance(coord[1], bool)
            or not isinstance(coord[0], (int, float))
            or not isinstance(coord[1], (int, float))
        ):
            msg = f"Coordinate {index} must be a [lng, lat] pair of numbers, got {coord!r}"
            raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})
        ring.append((float(coord[0]), float(coord[1])))
    return tuple(ring)


def _validate_ring(ring: tuple[tuple[float, float], ...]) -> None:
    """Enforce the closed-ring invariants.

    Raises:
        InvalidGeometry: If the ring is too short, not closed, has fewer
            than three distinct vertices, or leaves WGS 84 bounds.
    """
    if len(ring) < MIN_RING_POINTS:
        msg = (
            f"AOI ring needs at least {MIN_RING_POINTS} points "
            f"(3 distinct vertices + closure), got {len(ring)}"
        )
        raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})

    if ring[0] != ring[-1]:
        msg = f"AOI ring is not closed: first {ring[0]} != last {ring[-1]}"
        raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})

    distinct = len(set(ring[:-1]))
    if distinct < MIN_DISTINCT_VERTICES:
        msg = (
            f"AOI ring needs at least {MIN_DISTINCT_VERTICES} distinct vertices, got {distinct}"
        )
        raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})

    for lng, lat in ring:
        if not -180.0 <= lng <= 180.0 or not -90.0 <= lat <= 90.0:
            msg = f"Coordinate ({lng}, {lat}) is outside WGS 84 bounds"
            raise InvalidGeometry(msg, fields={"aoi_coordinates": msg})
