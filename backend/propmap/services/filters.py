"""
Local filter evaluation for property result sets held by the map client.
"""

from typing import Iterable, List

from propmap.schemas.property import FilterCriteria, MapBounds, PropertyRecord
from propmap.services.predicates import BoundsPredicate, local_predicates


def apply_local_filters(
    records: Iterable[PropertyRecord], criteria: FilterCriteria
) -> List[PropertyRecord]:
    """Return the records matching every active criterion, in input order."""
    predicates = local_predicates(criteria)
    if not predicates:
        return list(records)
    return [
        record
        for record in records
        if all(predicate.matches(record) for predicate in predicates)
    ]


def in_bounds(records: Iterable[PropertyRecord], bounds: MapBounds) -> List[PropertyRecord]:
    """Records whose coordinates fall inside ``bounds`` (edges included)."""
    predicate = BoundsPredicate(bounds)
    return [record for record in records if predicate.matches(record)]
