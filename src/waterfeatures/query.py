"""SPARQL query composition for Wikidata water features, pure-library module.

Queries are assembled as a small clause tree and rendered to text at the
end, so filter composition can be inspected without string matching:

* :class:`Triple`, :class:`Filter`, :class:`Values`, :class:`Bind` and
  :class:`Optional` are the WHERE-clause building blocks.
* :class:`SelectQuery` holds projections, the WHERE tree, grouping,
  ordering and the page window.
* :func:`features_select` / :func:`build_features_query` turn a
  :class:`~waterfeatures.models.FeatureFilter` into a query.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

from waterfeatures.models import FeatureFilter, FeatureType

PREFIXES: dict[str, str] = {
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "schema": "http://schema.org/",
    "wd": "http://www.wikidata.org/entity/",
    "wdt": "http://www.wikidata.org/prop/direct/",
}

# Bulgaria
COUNTRY_ID = "Q219"

TYPE_IDS: dict[FeatureType, str] = {
    FeatureType.LAKE: "Q23397",
    FeatureType.DAM: "Q12323",
    FeatureType.RESERVOIR: "Q131681",
    FeatureType.RIVER: "Q4022",
}

# Wikidata properties
P_COUNTRY = "wdt:P17"
P_INSTANCE_OF = "wdt:P31"
P_SUBCLASS_OF = "wdt:P279"
P_LOCATED_IN = "wdt:P131"
P_COORDINATES = "wdt:P625"
P_WIDTH = "wdt:P2049"
P_LENGTH = "wdt:P2043"
P_AREA = "wdt:P2046"
P_CAPACITY = "wdt:P2234"
P_INCEPTION = "wdt:P571"

SORT_FIELDS: dict[str, str] = {
    "name": "?itemLabel",
    "surfaceArea": "?surfaceArea",
    "capacity": "?capacity",
    "width": "?width",
    "length": "?length",
}

DEFAULT_LIMIT = 100

ENTITY_ID_PATTERN = re.compile(r"Q[1-9][0-9]*")


# ── Clause tree ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Triple:
    subject: str
    predicate: str
    obj: str

    def render(self, indent: str) -> list[str]:
        return [f"{indent}{self.subject} {self.predicate} {self.obj} ."]


@dataclass(frozen=True)
class Filter:
    expression: str

    def render(self, indent: str) -> list[str]:
        return [f"{indent}FILTER({self.expression})"]


@dataclass(frozen=True)
class Values:
    variable: str
    values: tuple[str, ...]

    def render(self, indent: str) -> list[str]:
        return [f"{indent}VALUES {self.variable} {{ {' '.join(self.values)} }}"]


@dataclass(frozen=True)
class Bind:
    expression: str
    variable: str

    def render(self, indent: str) -> list[str]:
        return [f"{indent}BIND({self.expression} AS {self.variable})"]


@dataclass(frozen=True)
class Optional:
    clauses: tuple["Clause", ...]

    def render(self, indent: str) -> list[str]:
        lines = [f"{indent}OPTIONAL {{"]
        for clause in self.clauses:
            lines.extend(clause.render(indent + "  "))
        lines.append(f"{indent}}}")
        return lines


Clause = Union[Triple, Filter, Values, Bind, Optional]


@dataclass
class SelectQuery:
    """A SELECT query in structured form."""

    projections: list[str]
    where: list[Clause] = field(default_factory=list)
    group_by: list[str] = field(default_factory=list)
    order_by: str | None = None
    limit: int | None = None
    offset: int | None = None

    def render(self) -> str:
        parts: list[str] = []

        for pfx, ns in sorted(PREFIXES.items()):
            parts.append(f"PREFIX {pfx}: <{ns}>")
        parts.append("")

        parts.append(f"SELECT {' '.join(self.projections)}")
        parts.append("WHERE {")
        for clause in self.where:
            parts.extend(clause.render("  "))
        parts.append("}")

        if self.group_by:
            parts.append(f"GROUP BY {' '.join(self.group_by)}")
        if self.order_by:
            parts.append(f"ORDER BY {self.order_by}")
        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")
        if self.offset is not None:
            parts.append(f"OFFSET {self.offset}")

        return "\n".join(parts)


# ── Helpers ───────────────────────────────────────────────────────


def escape_literal(value: str) -> str:
    """Escape a string for use inside a double-quoted SPARQL literal."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def english_label(subject: str, label_var: str) -> tuple[Clause, ...]:
    return (
        Triple(subject, "rdfs:label", label_var),
        Filter(f'LANG({label_var}) = "en"'),
    )


def type_constraint(category: FeatureType | None) -> list[Clause]:
    """Restrict ``?entity`` to one category, or to any known category."""
    path = f"{P_INSTANCE_OF}/{P_SUBCLASS_OF}*"
    if category is not None:
        return [Triple("?entity", path, f"wd:{TYPE_IDS[category]}")]
    all_types = tuple(f"wd:{TYPE_IDS[t]}" for t in FeatureType)
    return [
        Values("?category", all_types),
        Triple("?entity", path, "?category"),
    ]


def attribute_clauses() -> list[Clause]:
    """Type label, name and the independently optional attributes."""
    clauses: list[Clause] = [
        Triple("?entity", P_INSTANCE_OF, "?typeId"),
        *english_label("?typeId", "?typeName"),
        *english_label("?entity", "?itemLabel"),
        Optional((Triple("?entity", P_COORDINATES, "?coordValue"),)),
        Optional((
            Triple("?entity", P_LOCATED_IN, "?locatedIn"),
            *english_label("?locatedIn", "?locatedInName"),
        )),
        Optional((Triple("?entity", P_WIDTH, "?widthValue"),)),
        Optional((Triple("?entity", P_LENGTH, "?lengthValue"),)),
        Optional((Triple("?entity", P_AREA, "?areaValue"),)),
        Optional((Triple("?entity", P_CAPACITY, "?capacityValue"),)),
        Optional((Triple("?entity", P_INCEPTION, "?inceptionValue"),)),
        Optional((
            Triple("?entity", "schema:description", "?descriptionValue"),
            Filter('LANG(?descriptionValue) = "en"'),
        )),
    ]
    return clauses


# Output variable → inner variable; the output names are what
# :mod:`waterfeatures.normalize` reads.
SAMPLED_PROJECTIONS: dict[str, str] = {
    "item": "?entity",
    "typeLabel": "?typeName",
    "coord": "?coordValue",
    "locatedInLabel": "?locatedInName",
    "width": "?widthValue",
    "length": "?lengthValue",
    "surfaceArea": "?areaValue",
    "capacity": "?capacityValue",
    "inception": "?inceptionValue",
    "description": "?descriptionValue",
}


def region_clauses(region: str) -> list[Clause]:
    """Match the region label anywhere up the containment chain."""
    needle = escape_literal(region)
    return [
        Triple("?entity", f"{P_LOCATED_IN}/{P_LOCATED_IN}*", "?region"),
        Triple("?region", "rdfs:label", "?regionLabel"),
        Filter(f'CONTAINS(LCASE(?regionLabel), LCASE("{needle}"))'),
    ]


def numeric_literal(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def lower_bound_clauses(prop: str, var: str, bound: float) -> list[Clause]:
    # The required triple drops rows without the attribute.
    return [
        Triple("?entity", prop, var),
        Filter(f"{var} >= {numeric_literal(bound)}"),
    ]


def sort_expression(sort_field: str, direction: str) -> str:
    target = SORT_FIELDS.get(sort_field, SORT_FIELDS["name"])
    keyword = "DESC" if direction == "DESC" else "ASC"
    return f"{keyword}({target})"


# ── Public builders ───────────────────────────────────────────────


def features_select(filters: FeatureFilter) -> SelectQuery:
    """Build the structured list query for *filters*."""
    where: list[Clause] = [Triple("?entity", P_COUNTRY, f"wd:{COUNTRY_ID}")]
    where.extend(type_constraint(filters.category))
    where.extend(attribute_clauses())

    if filters.region is not None:
        where.extend(region_clauses(filters.region))
    if filters.min_capacity is not None:
        where.extend(
            lower_bound_clauses(P_CAPACITY, "?capacityValue", filters.min_capacity)
        )
    if filters.min_surface_area is not None:
        where.extend(
            lower_bound_clauses(P_AREA, "?areaValue", filters.min_surface_area)
        )

    projections = ["?itemLabel"] + [
        f"(SAMPLE({inner}) AS ?{name})"
        for name, inner in SAMPLED_PROJECTIONS.items()
    ]

    return SelectQuery(
        projections=projections,
        where=where,
        group_by=["?itemLabel"],
        order_by=sort_expression(filters.sort_field, filters.sort_direction),
        limit=filters.limit,
        offset=filters.offset,
    )


def build_features_query(filters: FeatureFilter | None = None, **kwargs) -> str:
    """Render the list query for *filters* (or a filter built from *kwargs*).

    Examples
    --------
    >>> q = build_features_query(category="DAM", limit=5, offset=10)
    >>> "wd:Q12323" in q and "LIMIT 5" in q and "OFFSET 10" in q
    True
    """
    if filters is None:
        filters = FeatureFilter(**kwargs)
    return features_select(filters).render()


def build_category_query(
    category: FeatureType, limit: int = DEFAULT_LIMIT,
) -> str:
    """Render the query used to load a whole category at once."""
    return build_features_query(FeatureFilter(category=category, limit=limit))


def build_feature_by_id_query(entity_id: str) -> str:
    """Render a query for a single entity.

    Raises
    ------
    ValueError
        If *entity_id* is not a Wikidata item ID (``Q`` followed by digits).
    """
    if not ENTITY_ID_PATTERN.fullmatch(entity_id or ""):
        raise ValueError(f"Invalid Wikidata entity ID: {entity_id!r}")

    where: list[Clause] = [Bind(f"wd:{entity_id}", "?entity")]
    where.extend(attribute_clauses())

    projections = ["?itemLabel"] + [
        f"(SAMPLE({inner}) AS ?{name})"
        for name, inner in SAMPLED_PROJECTIONS.items()
    ]
    query = SelectQuery(
        projections=projections,
        where=where,
        group_by=["?itemLabel"],
        limit=1,
    )
    return query.render()
