"""
Property list/update service.

Translates request parameters into predicate objects and runs the resulting
parameterized statements.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import Select, case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from propmap.core.config import settings
from propmap.core.metrics import record_property_query
from propmap.models.properties import GovProperty
from propmap.schemas.property import MapBounds, PropertyRecord, ResponseStatus
from propmap.services.predicates import (
    BoundsPredicate,
    CategoryPredicate,
    ContactPredicate,
    PropertyPredicate,
    ResponseStatusPredicate,
    TextSearchPredicate,
    describe,
    size_predicate,
)

logger = logging.getLogger(__name__)


class InvalidUpdate(ValueError):
    """Update request without an id or without any field to write."""


@dataclass
class PropertyQuery:
    """Filter parameters of a list request, as received."""

    min_lat: float = 0.0
    max_lat: float = 0.0
    min_lng: float = 0.0
    max_lng: float = 0.0
    search: str = ""
    where: str = ""
    type: str = ""
    min_size: float = 0.0
    max_size: float = 0.0
    size_range: str = ""
    response_status: str = ""
    has_contact: str = ""

    @property
    def is_search(self) -> bool:
        return bool(self.search.strip())

    @property
    def bounds(self) -> MapBounds:
        return MapBounds(
            min_lat=self.min_lat,
            max_lat=self.max_lat,
            min_lng=self.min_lng,
            max_lng=self.max_lng,
        )

    def predicates(self) -> List[PropertyPredicate]:
        """Lower the request into AND-composed predicates."""
        predicates: List[PropertyPredicate] = []

        # Searching is global; the viewport only applies without a term.
        if self.is_search:
            predicates.append(
                TextSearchPredicate.for_request(self.search.strip(), self.where.strip())
            )
        else:
            predicates.append(BoundsPredicate(self.bounds))

        if self.type.strip():
            predicates.append(CategoryPredicate(self.type.strip()))

        size = size_predicate(self.size_range.strip(), self.min_size, self.max_size)
        if size is not None:
            predicates.append(size)

        if self.response_status.strip():
            predicates.append(ResponseStatusPredicate(self.response_status.strip()))

        if self.has_contact == "true":
            predicates.append(ContactPredicate(True))
        elif self.has_contact == "false":
            predicates.append(ContactPredicate(False))

        return predicates


def build_list_statement(query: PropertyQuery, limit: Optional[int] = None) -> Select:
    """Build the capped SELECT for ``query``."""
    stmt = select(GovProperty)
    for predicate in query.predicates():
        stmt = stmt.where(predicate.clause())
    return stmt.limit(limit or settings.PROPERTY_QUERY_LIMIT)


def normalize_update(
    property_id: Optional[int],
    remark: Optional[str],
    response: Optional[str],
) -> Tuple[int, dict]:
    """
    Validate an update request and return ``(id, values)``.

    Values are trimmed; an empty response clears the outcome back to
    Not contacted.
    """
    values = {}
    if remark is not None:
        values["remark"] = remark.strip()
    if response is not None:
        response = response.strip()
        if response and response not in {status.value for status in ResponseStatus}:
            raise InvalidUpdate(f"Unknown response status: {response}")
        values["response"] = response or None

    if not property_id or property_id <= 0 or not values:
        raise InvalidUpdate("Missing ID or no data to update")
    return property_id, values


class PropertyService:
    """
    Read and annotate government properties.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_properties(self, query: PropertyQuery) -> List[PropertyRecord]:
        """Run the list query and return decoded records."""
        stmt = build_list_statement(query)
        result = await self.db.execute(stmt)
        rows = result.scalars().all()

        records = [PropertyRecord.model_validate(row) for row in rows]
        mode = "search" if query.is_search else "bounds"
        record_property_query(mode, len(records))
        logger.info(
            "property_query",
            extra={
                "mode": mode,
                "predicates": describe(query.predicates()),
                "row_count": len(records),
            },
        )
        return records

    async def update_property(
        self,
        property_id: Optional[int],
        remark: Optional[str] = None,
        response: Optional[str] = None,
    ) -> int:
        """
        Write the supplied response/remark fields of one property.

        Returns the number of matched rows. Re-sending the same values leaves
        the stored state unchanged.
        """
        property_id, values = normalize_update(property_id, remark, response)
        changed = or_(
            *(getattr(GovProperty, field).is_distinct_from(value) for field, value in values.items())
        )
        # Only a real change moves updated_at, so a repeated update is a no-op.
        values["updated_at"] = case(
            (changed, datetime.now(timezone.utc)), else_=GovProperty.updated_at
        )

        stmt = (
            update(GovProperty)
            .where(GovProperty.id == property_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        matched = result.rowcount or 0
        if matched == 0:
            logger.warning("property_update_no_match", extra={"property_id": property_id})
        else:
            logger.info(
                "property_updated",
                extra={"property_id": property_id, "fields": sorted(values)},
            )
        return matched
