"""
Map session: wires persisted client state to the fetch controller.
"""

import logging
from typing import List, Optional

from propmap.connectors.property_api import PropertyApiClient, PropertyApiError
from propmap.schemas.property import FilterCriteria, MapBounds, PropertyRecord
from propmap.services.app_state import AppState, AppStateStore
from propmap.services.map_data import MapDataController

logger = logging.getLogger(__name__)


class MapSession:
    """
    One user's map view.

    Use ``MapSession.restore`` to resume from the state store; every viewport
    change, filter change and selection is written back so the next session
    picks up where this one stopped.
    """

    def __init__(
        self,
        store: AppStateStore,
        api: PropertyApiClient,
        state: Optional[AppState] = None,
        min_zoom: Optional[int] = None,
    ):
        self.store = store
        self.state = state or AppState()
        self.controller = MapDataController(
            api,
            filters=self.state.filters,
            min_zoom=min_zoom,
            persistent_results=self.state.search_results,
            on_results_update=self._persist_results,
        )

    @classmethod
    async def restore(
        cls,
        store: AppStateStore,
        api: PropertyApiClient,
        min_zoom: Optional[int] = None,
    ) -> "MapSession":
        state = await store.load()
        return cls(store, api, state=state, min_zoom=min_zoom)

    @property
    def properties(self) -> List[PropertyRecord]:
        return self.controller.properties

    async def _persist_results(self, records: List[PropertyRecord]) -> None:
        self.state.search_results = list(records)
        await self.store.set("search_results", self.state.search_results)

    async def handle_bounds_change(self, bounds: MapBounds, zoom: int) -> bool:
        """Remember the viewport, then let the controller decide on a fetch."""
        self.state.current_zoom = await self.store.set("current_zoom", zoom)
        self.state.map_bounds = await self.store.set("map_bounds", bounds)
        return await self.controller.fetch_for_bounds(bounds, zoom)

    async def handle_center_change(self, latitude: float, longitude: float) -> None:
        self.state.map_center = await self.store.set("map_center", (latitude, longitude))

    async def update_filters(self, filters: FilterCriteria) -> None:
        self.state.filters = await self.store.set("filters", filters)
        await self.controller.set_filters(self.state.filters)

    async def trigger_search(self) -> bool:
        return await self.controller.trigger_search()

    async def set_filter_panel_open(self, is_open: bool) -> None:
        self.state.filter_open = await self.store.set("filter_open", is_open)

    async def set_map_view(self, view: str) -> None:
        self.state.map_view = await self.store.set("map_view", view)

    async def set_user_location(self, latitude: float, longitude: float) -> None:
        self.state.user_location = await self.store.set(
            "user_location", (latitude, longitude)
        )

    async def select_property(self, record: Optional[PropertyRecord]) -> None:
        self.state.selected_property = await self.store.set("selected_property", record)

    async def update_property(
        self,
        property_id: int,
        response: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> bool:
        """
        Record an outcome. Failures stay visible on ``controller.error``
        instead of propagating.
        """
        try:
            await self.controller.update_property(
                property_id, response=response, remark=remark
            )
        except PropertyApiError as exc:
            logger.warning(
                "map_session_update_failed",
                extra={"property_id": property_id, "error": str(exc)},
            )
            return False

        selected = self.state.selected_property
        if selected is not None and selected.id == property_id:
            refreshed = next(
                (record for record in self.controller.properties if record.id == property_id),
                None,
            )
            if refreshed is not None:
                await self.select_property(refreshed)
        return True

    async def clear_all(self) -> None:
        """Forget every persisted entry and every held record."""
        self.state = await self.store.clear_all()
        self.controller.clear_search()
        await self.controller.set_filters(self.state.filters)
        await self.controller.clear_properties()
