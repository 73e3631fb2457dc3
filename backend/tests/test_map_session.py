"""Tests for the map session wiring state persistence to the controller."""

import json

import pytest

from propmap.connectors.property_api import PropertyApiError
from propmap.schemas.property import FilterCriteria, MapBounds, PropertyRecord
from propmap.services.app_state import AppState, AppStateStore, InMemoryStatePort
from propmap.services.map_session import MapSession
from tests.factories import FakePropertyApi, UnreachableStatePort

BOUNDS = MapBounds(min_lat=29.30, max_lat=29.40, min_lng=76.90, max_lng=77.00)


@pytest.fixture
def port():
    return InMemoryStatePort()


@pytest.fixture
def store(port):
    return AppStateStore(port)


@pytest.mark.asyncio
async def test_bounds_change_persists_viewport_and_results(store, port):
    api = FakePropertyApi([PropertyRecord(id=1, Lat=29.35, Long=76.95)])
    session = await MapSession.restore(store, api, min_zoom=18)

    fetched = await session.handle_bounds_change(BOUNDS, 18)

    assert fetched is True
    assert port.store["propid-current-zoom"] == "18"
    assert json.loads(port.store["propid-map-bounds"])["minLat"] == 29.30
    assert [item["id"] for item in json.loads(port.store["propid-search-results"])] == [1]


@pytest.mark.asyncio
async def test_restore_resumes_previous_session(store):
    first = MapSession(store, FakePropertyApi([PropertyRecord(id=7)]), min_zoom=18)
    await first.update_filters(FilterCriteria(property_category="Residential"))
    await first.set_map_view("satellite")
    await first.handle_center_change(29.39, 76.97)
    await first.set_filter_panel_open(True)

    resumed = await MapSession.restore(store, FakePropertyApi(), min_zoom=18)

    assert resumed.state.filters.property_category == "Residential"
    assert resumed.state.map_view == "satellite"
    assert resumed.state.map_center == (29.39, 76.97)
    assert resumed.state.filter_open is True
    assert resumed.controller.filters.property_category == "Residential"


@pytest.mark.asyncio
async def test_restored_results_are_displayed_before_any_fetch(store):
    await store.set(
        "search_results",
        [PropertyRecord(id=1, ColonyName="Model Town"), PropertyRecord(id=2, ColonyName="Sector 13")],
    )
    await store.set("filters", FilterCriteria(colony_name="Sector 13"))

    session = await MapSession.restore(store, FakePropertyApi())

    assert [record.id for record in session.properties] == [2]


@pytest.mark.asyncio
async def test_update_refreshes_selected_property(store):
    record = PropertyRecord(id=3, OwnerName="Asha")
    api = FakePropertyApi([record])
    session = MapSession(store, api, min_zoom=18)
    await session.handle_bounds_change(BOUNDS, 18)
    await session.select_property(record)

    assert await session.update_property(3, response="Interested in Buy") is True

    assert session.state.selected_property.response == "Interested in Buy"
    stored = await store.get("selected_property")
    assert stored.response == "Interested in Buy"


@pytest.mark.asyncio
async def test_update_failure_is_kept_on_the_controller(store):
    api = FakePropertyApi([PropertyRecord(id=3)])
    session = MapSession(store, api, min_zoom=18)
    await session.handle_bounds_change(BOUNDS, 18)

    api.error = PropertyApiError("HTTP error 500: Update failed", status_code=500)

    assert await session.update_property(3, remark="x") is False
    assert session.controller.error == "HTTP error 500: Update failed"


@pytest.mark.asyncio
async def test_user_location_is_validated(store):
    session = MapSession(store, FakePropertyApi())

    await session.set_user_location(29.38, 76.98)
    assert session.state.user_location == (29.38, 76.98)

    with pytest.raises(ValueError):
        await session.set_user_location(120.0, 76.98)


@pytest.mark.asyncio
async def test_clear_all_resets_state_and_results(store, port):
    api = FakePropertyApi([PropertyRecord(id=1)])
    session = MapSession(store, api, min_zoom=18)
    await session.update_filters(FilterCriteria(search="ram"))
    await session.trigger_search()

    await session.clear_all()

    assert session.state == AppState(search_results=[])
    assert session.properties == []
    assert session.controller.is_search_active is False
    assert port.store == {"propid-search-results": "[]"}


@pytest.mark.asyncio
async def test_session_keeps_working_when_state_store_is_down():
    store = AppStateStore(UnreachableStatePort())
    api = FakePropertyApi([PropertyRecord(id=1, Lat=29.35, Long=76.95)])

    session = await MapSession.restore(store, api, min_zoom=18)
    fetched = await session.handle_bounds_change(BOUNDS, 18)

    assert session.state.current_zoom == 18
    assert fetched is True
    assert len(api.bounds_calls) == 1
    assert [record.id for record in session.properties] == [1]
    assert session.controller.loading is False
