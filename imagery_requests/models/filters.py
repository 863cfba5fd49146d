"""Sparse filter criteria attached to an imagery request.

A field is "unconstrained" when it is absent.  An absent field and an
empty list are not the same thing on the wire: only actively
constrained fields are serialised, so a stored filter spec never gains
keys the requester did not set.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from imagery_requests.core.exceptions import ValidationError

MAX_CLOUD_COVERAGE_PCT = 100


class ResolutionCategory(enum.Enum):
    """Coarse ground-sample-distance buckets offered in the explorer UI."""

    VHR = "vhr"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ImageType(enum.Enum):
    """Sensor family of the requested imagery."""

    OPTICAL = "optical"
    RADAR = "radar"
    THERMAL = "thermal"


@dataclass(frozen=True, slots=True)
class RequestFilterSpec:
    """Optional filter criteria for an imagery request.

    ``None`` on any attribute means "no constraint".

    Attributes:
        resolution_categories: Accepted resolution buckets.
        max_cloud_coverage_pct: Cloud cover ceiling, 0-100 inclusive.
        providers: Provider names in the order the requester chose them.
        bands: Spectral band labels in requester order.
        image_types: Sensor families (in practice at most one).
    """

    resolution_categories: frozenset[ResolutionCategory] | None = None
    max_cloud_coverage_pct: int | None = None
    providers: tuple[str, ...] | None = None
    bands: tuple[str, ...] | None = None
    image_types: tuple[ImageType, ...] | None = None

    def __post_init__(self) -> None:
        if self.max_cloud_coverage_pct is not None and not (
            0 <= self.max_cloud_coverage_pct <= MAX_CLOUD_COVERAGE_PCT
        ):
            msg = "Max cloud coverage must be between 0 and 100"
            raise ValidationError(msg, fields={"filters.max_cloud_coverage": msg})

    @property
    def is_empty(self) -> bool:
        """Whether no field is constrained."""
        return not self.to_dict()

    @property
    def effective_max_cloud_coverage_pct(self) -> int:
        """Cloud ceiling with "unconstrained" mapped to 100."""
        if self.max_cloud_coverage_pct is None:
            return MAX_CLOUD_COVERAGE_PCT
        return self.max_cloud_coverage_pct

    def matches_provider(self, name: str) -> bool:
        """Case-insensitive provider membership; unconstrained matches anything."""
        if not self.providers:
            return True
        needle = name.strip().lower()
        return any(p.strip().lower() == needle for p in self.providers)

    def mentions_provider(self, fragment: str) -> bool:
        """Case-insensitive substring match against the chosen providers."""
        needle = fragment.strip().lower()
        return any(needle in p.lower() for p in self.providers or ())

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, object]:
        """Serialise only the constrained fields."""
        out: dict[str, object] = {}
        if self.resolution_categories:
            order = list(ResolutionCategory)
            out["resolution_category"] = [
                c.value for c in sorted(self.resolution_categories, key=order.index)
            ]
        if self.max_cloud_coverage_pct is not None:
            out["max_cloud_coverage"] = self.max_cloud_coverage_pct
        if self.providers:
            out["providers"] = list(self.providers)
        if self.bands:
            out["bands"] = list(self.bands)
        if self.image_types:
            out["image_types"] = [t.value for t in self.image_types]
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RequestFilterSpec | None:
        """Parse the wire shape; returns ``None`` when nothing is constrained.

        Empty lists are treated as "not constrained" and dropped.

        Raises:
            ValidationError: On unknown enum values or out-of-range numbers.
        """
        if data is None:
            return None
        if not isinstance(data, dict):
            msg = "Filters must be an object"
            raise ValidationError(msg, fields={"filters": msg})

        spec = cls(
            resolution_categories=_parse_enum_set(
                data.get("resolution_category"), ResolutionCategory, "resolution_category"
            ),
            max_cloud_coverage_pct=_parse_cloud(data.get("max_cloud_coverage")),
            providers=_parse_str_list(data.get("providers"), "providers"),
            bands=_parse_str_list(data.get("bands"), "bands"),
            image_types=_parse_enum_list(data.get("image_types"), ImageType, "image_types"),
        )
        return None if spec.is_empty else spec


# ---------------------------------------------------------------------------
# Parsing helpers (module-private)
# ---------------------------------------------------------------------------


def _parse_enum_set(
    raw: object,
    enum_cls: type[ResolutionCategory],
    field_name: str,
) -> frozenset[ResolutionCategory] | None:
    values = _parse_enum_list(raw, enum_cls, field_name)
    return frozenset(values) if values else None


def _parse_enum_list(raw: object, enum_cls: type[Any], field_name: str) -> tuple[Any, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        msg = f"{field_name} must be an array"
        raise ValidationError(msg, fields={f"filters.{field_name}": msg})
    parsed: list[Any] = []
    for item in raw:
        try:
            member = enum_cls(str(item).strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in enum_cls)
            msg = f"Invalid {field_name} value {item!r}; must be one of: {valid}"
            raise ValidationError(msg, fields={f"filters.{field_name}": msg}) from None
        if member not in parsed:
            parsed.append(member)
    return tuple(parsed) or None


def _parse_str_list(raw: object, field_name: str) -> tuple[str, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        msg = f"{field_name} must be an array"
        raise ValidationError(msg, fields={f"filters.{field_name}": msg})
    cleaned = tuple(str(item).strip() for item in raw if str(item).strip())
    return cleaned or None


def _parse_cloud(raw: object) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        msg = "Max cloud coverage must be between 0 and 100"
        raise ValidationError(msg, fields={"filters.max_cloud_coverage": msg})
    if not 0 <= raw <= MAX_CLOUD_COVERAGE_PCT:
        msg = "Max cloud coverage must be between 0 and 100"
        raise ValidationError(msg, fields={"filters.max_cloud_coverage": msg})
    return int(round(raw))
