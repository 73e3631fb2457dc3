"""
Viewport-driven property fetching for the map client.

Decides on every viewport change, filter change or search trigger whether the
property endpoint has to be queried, and narrows every result set with the
local filters before it is exposed.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from propmap.connectors.property_api import PropertyApiClient, PropertyApiError
from propmap.core.config import settings
from propmap.schemas.property import FilterCriteria, MapBounds, PropertyRecord
from propmap.services.filters import apply_local_filters

logger = logging.getLogger(__name__)

ResultsCallback = Callable[[List[PropertyRecord]], Union[Awaitable[None], None]]


@dataclass(frozen=True)
class FetchKey:
    """Memo key of the last successful bounds fetch."""

    bounds: MapBounds
    filters_fingerprint: str

    def covers(self, bounds: MapBounds, fingerprint: str, epsilon: float) -> bool:
        return (
            fingerprint == self.filters_fingerprint
            and not bounds.moved_beyond(self.bounds, epsilon)
        )


class MapDataController:
    """
    Holds the displayed property set and the fetch policy around it.

    Fetch policy:
    - bounds fetches are suppressed while a global search is active;
    - below the effective minimum zoom nothing is fetched, and held results
      are dropped only when they reached the server's row cap;
    - a bounds fetch is skipped when the filters are unchanged and no edge
      moved more than ``bounds_epsilon`` since the last successful fetch.

    The memo key is recorded after a successful bounds fetch and dropped by a
    search, by clearing results, and by a failed fetch. Every fetch takes a
    new generation number; a response whose generation is no longer current
    is discarded.
    """

    def __init__(
        self,
        api: PropertyApiClient,
        filters: Optional[FilterCriteria] = None,
        min_zoom: Optional[int] = None,
        persistent_results: Optional[Sequence[PropertyRecord]] = None,
        on_results_update: Optional[ResultsCallback] = None,
        bounds_epsilon: Optional[float] = None,
    ):
        self.api = api
        self.min_zoom = min_zoom if min_zoom is not None else settings.MIN_ZOOM_LEVEL
        self.bounds_epsilon = (
            settings.BOUNDS_EPSILON if bounds_epsilon is None else bounds_epsilon
        )
        self.on_results_update = on_results_update
        self.loading = False
        self.error: Optional[str] = None
        self.search_active = False

        self._filters = filters or FilterCriteria()
        self._raw: List[PropertyRecord] = list(persistent_results or [])
        self.properties: List[PropertyRecord] = apply_local_filters(self._raw, self._filters)
        self._generation = 0
        self._last_fetch: Optional[FetchKey] = None

    @property
    def filters(self) -> FilterCriteria:
        return self._filters

    @property
    def effective_min_zoom(self) -> int:
        """Size-filtered queries are sparser, so they unlock a little earlier."""
        if self._filters.has_size_filter:
            return max(
                settings.SIZE_FILTER_ZOOM_FLOOR,
                self.min_zoom - settings.SIZE_FILTER_ZOOM_OFFSET,
            )
        return self.min_zoom

    @property
    def is_search_active(self) -> bool:
        return self.search_active and bool(self._filters.search_term)

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _notify(self, records: List[PropertyRecord]) -> None:
        """Hand the displayed records to the callback. Its failures are logged only."""
        if self.on_results_update is None:
            return
        try:
            outcome = self.on_results_update(records)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.warning(
                "map_data_results_callback_failed",
                extra={"error": str(exc), "count": len(records)},
            )

    def _store(self, records: List[PropertyRecord]) -> None:
        self._raw = list(records)
        self.properties = apply_local_filters(self._raw, self._filters)

    def _drop_results(self) -> None:
        self._raw = []
        self.properties = []
        self._last_fetch = None

    async def fetch_for_bounds(self, bounds: MapBounds, zoom: int) -> bool:
        """
        React to a viewport change. Returns True when the endpoint was queried.
        """
        if self.is_search_active:
            return False

        if zoom < self.effective_min_zoom:
            if len(self.properties) >= settings.PROPERTY_QUERY_LIMIT:
                logger.info(
                    "map_data_cleared_below_zoom",
                    extra={"zoom": zoom, "held": len(self.properties)},
                )
                self._drop_results()
            return False

        fingerprint = self._filters.fingerprint()
        if self._last_fetch is not None and self._last_fetch.covers(
            bounds, fingerprint, self.bounds_epsilon
        ):
            return False

        generation = self._next_generation()
        self.loading = True
        self.error = None
        try:
            records = await self.api.fetch_in_bounds(bounds, self._filters)
        except PropertyApiError as exc:
            if self._is_current(generation):
                self.error = str(exc) or "Failed to fetch properties"
                self._last_fetch = None
                self.loading = False
            logger.warning(
                "map_data_fetch_failed",
                extra={"error": str(exc), "generation": generation},
            )
            return True

        if not self._is_current(generation):
            logger.info("map_data_stale_response", extra={"generation": generation})
            return True

        self._store(records)
        self._last_fetch = FetchKey(bounds=bounds, filters_fingerprint=fingerprint)
        self.loading = False
        await self._notify(self.properties)
        return True

    async def trigger_search(self) -> bool:
        """
        Run a global search for the current search text.

        Search mode stays on until ``clear_search`` or the text is emptied.
        Returns True when the endpoint was queried.
        """
        if not self._filters.search_term:
            return False
        self.search_active = True
        return await self._run_search()

    def clear_search(self) -> None:
        """Leave search mode; the next viewport change fetches by bounds again."""
        self.search_active = False
        self._last_fetch = None

    async def _run_search(self) -> bool:
        generation = self._next_generation()
        self._last_fetch = None
        self.loading = True
        self.error = None
        try:
            records = await self.api.search(self._filters.search_term, self._filters)
        except PropertyApiError as exc:
            if self._is_current(generation):
                self.error = str(exc) or "Failed to search properties"
                self.loading = False
            logger.warning(
                "map_data_search_failed",
                extra={"error": str(exc), "generation": generation},
            )
            return True

        if not self._is_current(generation):
            logger.info("map_data_stale_response", extra={"generation": generation})
            return True

        self._store(records)
        self.loading = False
        await self._notify(self.properties)
        return True

    async def set_filters(self, filters: FilterCriteria) -> None:
        """
        Apply new filters: re-run an active search, otherwise narrow the held
        results locally. The next bounds fetch sees the changed fingerprint.
        """
        self._filters = filters
        if self.search_active and not filters.search_term:
            self.clear_search()
        if self.is_search_active:
            await self._run_search()
            return
        self.properties = apply_local_filters(self._raw, filters)

    async def update_property(
        self,
        property_id: int,
        response: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> None:
        """Record an outcome and patch the held copy of the record."""
        try:
            success = await self.api.update_property(
                property_id, response=response, remark=remark
            )
            if not success:
                raise PropertyApiError("Update failed")
        except PropertyApiError as exc:
            self.error = str(exc) or "Failed to update property"
            raise

        changes = {"updated_at": datetime.now(timezone.utc)}
        if response is not None:
            changes["response"] = response.strip() or None
        if remark is not None:
            changes["remark"] = remark.strip()

        def patch(records: List[PropertyRecord]) -> List[PropertyRecord]:
            return [
                record.model_copy(update=changes) if record.id == property_id else record
                for record in records
            ]

        self._raw = patch(self._raw)
        self.properties = patch(self.properties)
        await self._notify(self.properties)

    def clear_error(self) -> None:
        self.error = None

    async def clear_properties(self) -> None:
        """Drop every held record, including the persisted result set."""
        self._drop_results()
        await self._notify([])
