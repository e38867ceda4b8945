"""Normalize SPARQL JSON result bindings into :class:`WaterFeature` records.

The input is the standard SPARQL 1.1 JSON results document::

    {"head": {...}, "results": {"bindings": [{"var": {"type": ..., "value": ...}}]}}

Anything that does not look like that normalizes to an empty list.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional

from waterfeatures.models import Coordinates, FeatureType, WaterFeature

logger = logging.getLogger(__name__)

POINT_PATTERN = re.compile(r"Point\(([^ ]+) ([^)]+)\)")

WIKIDATA_PAGE = "https://www.wikidata.org/wiki/"

# Checked in order; the first keyword found in the type label wins.
CATEGORY_KEYWORDS: tuple[tuple[str, FeatureType], ...] = (
    ("dam", FeatureType.DAM),
    ("reservoir", FeatureType.RESERVOIR),
    ("river", FeatureType.RIVER),
    ("lake", FeatureType.LAKE),
)

DEFAULT_CATEGORY = FeatureType.LAKE


class Binding:
    """Read-only view over one result row.

    A variable is *present* when the row carries a cell for it with a
    ``value`` key, whatever that value is (``"0"`` and ``""`` included).
    """

    def __init__(self, cells: dict[str, Any]) -> None:
        self._cells = cells

    def has(self, name: str) -> bool:
        cell = self._cells.get(name)
        return isinstance(cell, dict) and "value" in cell

    def get(self, name: str) -> Optional[str]:
        if not self.has(name):
            return None
        return str(self._cells[name]["value"])

    def get_float(self, name: str) -> Optional[float]:
        raw = self.get(name)
        if raw is None:
            return None
        try:
            value = float(raw)
        except ValueError:
            logger.debug("Non-numeric value for %s: %r", name, raw)
            return None
        if not math.isfinite(value):
            logger.debug("Non-finite value for %s: %r", name, raw)
            return None
        return value


def parse_point(text: Optional[str]) -> Optional[Coordinates]:
    """Parse a WKT ``Point(<lon> <lat>)`` literal.

    No range checking is done on either axis, but both must be finite.
    """
    if text is None:
        return None
    match = POINT_PATTERN.search(text)
    if not match:
        return None
    try:
        longitude = float(match.group(1))
        latitude = float(match.group(2))
    except ValueError:
        return None
    if not (math.isfinite(longitude) and math.isfinite(latitude)):
        return None
    return Coordinates(latitude=latitude, longitude=longitude)


def infer_category(type_label: Optional[str]) -> FeatureType:
    if not type_label:
        return DEFAULT_CATEGORY
    label = type_label.lower()
    for keyword, category in CATEGORY_KEYWORDS:
        if keyword in label:
            return category
    return DEFAULT_CATEGORY


def entity_id_from_uri(uri: str) -> str:
    """``http://www.wikidata.org/entity/Q123`` → ``Q123``."""
    return uri.rstrip("/").rsplit("/", 1)[-1]


def source_url(entity_id: str) -> str:
    return f"{WIKIDATA_PAGE}{entity_id}"


def normalize_binding(binding: Binding) -> Optional[WaterFeature]:
    """Turn one row into a record; rows without a subject are dropped."""
    item = binding.get("item")
    if not item:
        logger.debug("Skipping binding without an item URI")
        return None

    entity_id = entity_id_from_uri(item)
    name = binding.get("itemLabel")

    return WaterFeature(
        id=entity_id,
        name=name if name is not None else "Unknown",
        category=infer_category(binding.get("typeLabel")),
        coordinates=parse_point(binding.get("coord")),
        located_in=binding.get("locatedInLabel"),
        width=binding.get_float("width"),
        length=binding.get_float("length"),
        surface_area=binding.get_float("surfaceArea"),
        capacity=binding.get_float("capacity"),
        inception_date=binding.get("inception"),
        source_url=source_url(entity_id),
        description=binding.get("description"),
    )


def extract_bindings(raw: Any) -> list[dict[str, Any]]:
    """Return ``raw["results"]["bindings"]`` or ``[]`` if it is not there."""
    if not isinstance(raw, dict):
        return []
    results = raw.get("results")
    if not isinstance(results, dict):
        return []
    bindings = results.get("bindings")
    if not isinstance(bindings, list):
        return []
    return [b for b in bindings if isinstance(b, dict)]


def normalize_results(raw: Any) -> list[WaterFeature]:
    """Normalize a SPARQL JSON results document.

    Parameters
    ----------
    raw:
        Parsed JSON as returned by :meth:`SparqlHelper.select`.

    Returns
    -------
    list[WaterFeature]
        One record per usable binding, in result order.
    """
    features: list[WaterFeature] = []
    for cells in extract_bindings(raw):
        feature = normalize_binding(Binding(cells))
        if feature is not None:
            features.append(feature)
    return features
