"""
Composable property predicates.

Each predicate lowers to a parameterized SQLAlchemy clause for the list query
and evaluates the same condition against an in-memory ``PropertyRecord``, so
the server and the map client agree on every boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

from sqlalchemy import String, and_, cast, or_
from sqlalchemy.sql.elements import ColumnElement

from propmap.models.properties import GovProperty
from propmap.schemas.property import (
    CUSTOM_SIZE_RANGE,
    DEFAULT_SEARCH_COLUMNS,
    RESPONSE_VALUES,
    SIZE_BUCKETS,
    FilterCriteria,
    MapBounds,
    PropertyRecord,
    ResponseStatus,
    SearchColumn,
)

# Allow-listed search columns resolved to mapped attributes. User input never
# reaches the statement as an identifier.
SEARCH_ATTRIBUTES = {
    SearchColumn.AUTHORITY_AREA: GovProperty.authority_area,
    SearchColumn.COLONY_NAME: GovProperty.colony_name,
    SearchColumn.OWNER_NAME: GovProperty.owner_name,
    SearchColumn.ADDRESS1: GovProperty.address1,
    SearchColumn.MOBILE_NO: GovProperty.mobile_no,
    SearchColumn.PK_PROPERTY_ID: GovProperty.pk_property_id,
    SearchColumn.PID: GovProperty.pid,
    SearchColumn.PROPERTY_CATEGORY: GovProperty.property_category,
    SearchColumn.PROPERTY_TYPE: GovProperty.property_type,
    SearchColumn.PROPERTY_SUB_TYPE: GovProperty.property_sub_type,
    SearchColumn.MC_NAME: GovProperty.mc_name,
    SearchColumn.KHASARA_NO: GovProperty.khasara_no,
    SearchColumn.PLOT_NO: GovProperty.plot_no,
}

RECORD_FIELDS = {
    SearchColumn.AUTHORITY_AREA: "authority_area",
    SearchColumn.COLONY_NAME: "colony_name",
    SearchColumn.OWNER_NAME: "owner_name",
    SearchColumn.ADDRESS1: "address1",
    SearchColumn.MOBILE_NO: "mobile_no",
    SearchColumn.PK_PROPERTY_ID: "pk_property_id",
    SearchColumn.PID: "pid",
    SearchColumn.PROPERTY_CATEGORY: "property_category",
    SearchColumn.PROPERTY_TYPE: "property_type",
    SearchColumn.PROPERTY_SUB_TYPE: "property_sub_type",
    SearchColumn.MC_NAME: "mc_name",
    SearchColumn.KHASARA_NO: "khasara_no",
    SearchColumn.PLOT_NO: "plot_no",
}


class PropertyPredicate(Protocol):
    def clause(self) -> ColumnElement:
        ...

    def matches(self, record: PropertyRecord) -> bool:
        ...


def parse_size(value) -> Optional[float]:
    """Parse a stored plot size, returning None when it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class BoundsPredicate:
    """Closed lat/lng rectangle."""

    bounds: MapBounds

    def clause(self) -> ColumnElement:
        return and_(
            GovProperty.latitude.between(self.bounds.min_lat, self.bounds.max_lat),
            GovProperty.longitude.between(self.bounds.min_lng, self.bounds.max_lng),
        )

    def matches(self, record: PropertyRecord) -> bool:
        if record.latitude is None or record.longitude is None:
            return False
        return self.bounds.contains(record.latitude, record.longitude)


@dataclass(frozen=True)
class TextSearchPredicate:
    """Case-insensitive substring match over one or more allow-listed columns."""

    term: str
    columns: Sequence[SearchColumn] = DEFAULT_SEARCH_COLUMNS

    @classmethod
    def for_request(cls, term: str, where: Optional[str]) -> "TextSearchPredicate":
        """Restrict to ``where`` when allow-listed, else search every default column."""
        column = SearchColumn.parse(where) if where else None
        if column is not None:
            return cls(term=term, columns=(column,))
        return cls(term=term)

    def clause(self) -> ColumnElement:
        pattern = f"%{self.term}%"
        conditions = [
            cast(SEARCH_ATTRIBUTES[column], String).ilike(pattern)
            for column in self.columns
        ]
        return conditions[0] if len(conditions) == 1 else or_(*conditions)

    def matches(self, record: PropertyRecord) -> bool:
        needle = self.term.lower()
        for column in self.columns:
            value = getattr(record, RECORD_FIELDS[column])
            if value is not None and needle in str(value).lower():
                return True
        return False


@dataclass(frozen=True)
class CategoryPredicate:
    category: str

    def clause(self) -> ColumnElement:
        return GovProperty.property_category == self.category

    def matches(self, record: PropertyRecord) -> bool:
        return record.property_category == self.category


@dataclass(frozen=True)
class ColonyPredicate:
    colony: str

    def clause(self) -> ColumnElement:
        return GovProperty.colony_name == self.colony

    def matches(self, record: PropertyRecord) -> bool:
        return record.colony_name == self.colony


@dataclass(frozen=True)
class ResponseStatusPredicate:
    """Exact response match; Not contacted also covers missing or unknown values."""

    status: str

    def clause(self) -> ColumnElement:
        if self.status == ResponseStatus.NOT_CONTACTED.value:
            recorded = sorted(RESPONSE_VALUES - {self.status})
            return or_(
                GovProperty.response.is_(None),
                GovProperty.response.not_in(recorded),
            )
        return GovProperty.response == self.status

    def matches(self, record: PropertyRecord) -> bool:
        return record.response_status == self.status


@dataclass(frozen=True)
class ContactPredicate:
    """Phone number present (non-null, non-empty) or absent."""

    has_contact: bool

    def clause(self) -> ColumnElement:
        if self.has_contact:
            return and_(GovProperty.mobile_no.is_not(None), GovProperty.mobile_no != "")
        return or_(GovProperty.mobile_no.is_(None), GovProperty.mobile_no == "")

    def matches(self, record: PropertyRecord) -> bool:
        return record.has_contact == self.has_contact


@dataclass(frozen=True)
class SizeBucketPredicate:
    """Named plot-size bucket, half-open: lower <= size < upper."""

    name: str

    @property
    def interval(self):
        return SIZE_BUCKETS[self.name]

    def clause(self) -> ColumnElement:
        lower, upper = self.interval
        conditions = []
        if lower is not None:
            conditions.append(GovProperty.plot_size >= lower)
        if upper is not None:
            conditions.append(GovProperty.plot_size < upper)
        return and_(*conditions)

    def matches(self, record: PropertyRecord) -> bool:
        size = parse_size(record.plot_size)
        if size is None:
            return False
        lower, upper = self.interval
        if lower is not None and size < lower:
            return False
        if upper is not None and size >= upper:
            return False
        return True


@dataclass(frozen=True)
class SizeRangePredicate:
    """Custom inclusive range; a bound of None leaves that side open."""

    min_size: Optional[float] = None
    max_size: Optional[float] = None

    def clause(self) -> ColumnElement:
        conditions = []
        if self.min_size is not None:
            conditions.append(GovProperty.plot_size >= self.min_size)
        if self.max_size is not None:
            conditions.append(GovProperty.plot_size <= self.max_size)
        return and_(*conditions)

    def matches(self, record: PropertyRecord) -> bool:
        size = parse_size(record.plot_size)
        if size is None:
            return False
        if self.min_size is not None and size < self.min_size:
            return False
        if self.max_size is not None and size > self.max_size:
            return False
        return True


def size_predicate(
    size_range: Optional[str],
    min_size: Optional[float] = None,
    max_size: Optional[float] = None,
) -> Optional[PropertyPredicate]:
    """
    Resolve the plot-size constraint.

    A named bucket wins. For anything else (``custom``, no range, or a name
    that is not a bucket) positive ``min_size``/``max_size`` values form an
    inclusive range.
    """
    if size_range in SIZE_BUCKETS:
        return SizeBucketPredicate(size_range)
    lower = min_size if min_size and min_size > 0 else None
    upper = max_size if max_size and max_size > 0 else None
    if lower is None and upper is None:
        return None
    return SizeRangePredicate(min_size=lower, max_size=upper)


def local_predicates(criteria: FilterCriteria) -> List[PropertyPredicate]:
    """Predicates the map client enforces on every result set."""
    predicates: List[PropertyPredicate] = []
    if criteria.has_size_filter:
        if criteria.size_range == CUSTOM_SIZE_RANGE:
            predicates.append(
                SizeRangePredicate(
                    min_size=criteria.min_size or None,
                    max_size=criteria.max_size or None,
                )
            )
        else:
            size = size_predicate(
                criteria.size_range, criteria.min_size, criteria.max_size
            )
            if size is not None:
                predicates.append(size)
    if criteria.property_category:
        predicates.append(CategoryPredicate(criteria.property_category))
    if criteria.colony_name:
        predicates.append(ColonyPredicate(criteria.colony_name))
    if criteria.response_status:
        predicates.append(ResponseStatusPredicate(criteria.response_status))
    if criteria.has_contact is not None:
        predicates.append(ContactPredicate(criteria.has_contact))
    return predicates


def describe(predicates: Sequence[PropertyPredicate]) -> Dict[str, int]:
    """Count predicates by type, for log context."""
    counts: Dict[str, int] = {}
    for predicate in predicates:
        name = type(predicate).__name__
        counts[name] = counts.get(name, 0) + 1
    return counts
