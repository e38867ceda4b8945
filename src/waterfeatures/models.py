"""
Pydantic models for water-feature records and list filters.

Provides the canonical record shape produced by
:mod:`waterfeatures.normalize` and the filter object consumed by
:mod:`waterfeatures.query`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FeatureType(str, Enum):
    """The four kinds of water feature the service knows about."""

    LAKE = "LAKE"
    DAM = "DAM"
    RESERVOIR = "RESERVOIR"
    RIVER = "RIVER"

    @classmethod
    def parse(cls, value: Any) -> Optional["FeatureType"]:
        """Return the matching member, or ``None`` for anything unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


class Coordinates(BaseModel):
    """A WGS84 point."""

    latitude: float
    longitude: float

    model_config = ConfigDict(frozen=True)


class WaterFeature(BaseModel):
    """One water feature, normalized from a SPARQL result binding."""

    id: str = Field(..., description="Wikidata entity ID, e.g. Q1234")
    name: str = Field(..., description="English label")
    category: FeatureType
    coordinates: Optional[Coordinates] = None
    located_in: Optional[str] = Field(None, description="Containing region label")
    width: Optional[float] = None
    length: Optional[float] = None
    surface_area: Optional[float] = None
    capacity: Optional[float] = None
    inception_date: Optional[str] = None
    source_url: str
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True)


SortDirection = Literal["ASC", "DESC"]


class FeatureFilter(BaseModel):
    """Filter, sort and pagination options for a feature listing."""

    category: Optional[FeatureType] = None
    region: Optional[str] = None
    min_capacity: Optional[float] = Field(None, allow_inf_nan=False)
    min_surface_area: Optional[float] = Field(None, allow_inf_nan=False)
    sort_field: str = "name"
    sort_direction: SortDirection = "ASC"
    limit: int = Field(100, gt=0)
    offset: int = Field(0, ge=0)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> Optional[FeatureType]:
        """Unknown categories mean "no category filter"."""
        return FeatureType.parse(v)

    @field_validator("sort_direction", mode="before")
    @classmethod
    def coerce_direction(cls, v: Any) -> str:
        if isinstance(v, str) and v.strip().upper() == "DESC":
            return "DESC"
        return "ASC"

    @field_validator("sort_field", mode="before")
    @classmethod
    def coerce_sort_field(cls, v: Any) -> str:
        return v or "name"

    @field_validator("region", mode="before")
    @classmethod
    def blank_region(cls, v: Any) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def has_attribute_filters(self) -> bool:
        """True when region or a numeric lower bound narrows the result.

        A bound of ``0`` is a real bound: it excludes features without the
        attribute.
        """
        return (
            self.region is not None
            or self.min_capacity is not None
            or self.min_surface_area is not None
        )
