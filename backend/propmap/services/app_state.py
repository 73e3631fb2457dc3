"""
Persisted map client state.

Every entry is stored under its own key and validated on its own when loaded:
a malformed entry falls back to its default without affecting the others, so a
reload resumes as much of the last view as possible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Protocol, Tuple

from pydantic import Field, StrictBool, TypeAdapter, ValidationError

from propmap.core.config import settings
from propmap.core.redis import STATE_STORE_ERRORS
from propmap.schemas.property import FilterCriteria, MapBounds, PropertyRecord

logger = logging.getLogger(__name__)

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]
LatLng = Tuple[Latitude, Longitude]
Zoom = Annotated[int, Field(ge=1, le=20)]
MapView = Literal["street", "satellite"]

DEFAULT_MAP_CENTER: LatLng = (29.3810900, 76.9869630)
DEFAULT_ZOOM = 13


class StatePort(Protocol):
    """Key/value persistence for serialized state entries."""

    async def load(self, key: str) -> Optional[str]:
        ...

    async def save(self, key: str, value: str) -> None:
        ...

    async def clear(self, key: str) -> None:
        ...


class InMemoryStatePort:
    """Process-local state port, used by tests and single-process tools."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.store: Dict[str, str] = dict(initial or {})

    async def load(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def save(self, key: str, value: str) -> None:
        self.store[key] = value

    async def clear(self, key: str) -> None:
        self.store.pop(key, None)


@dataclass
class AppState:
    filters: FilterCriteria = field(default_factory=FilterCriteria)
    filter_open: bool = False
    selected_property: Optional[PropertyRecord] = None
    map_view: MapView = "street"
    current_zoom: int = DEFAULT_ZOOM
    map_center: LatLng = DEFAULT_MAP_CENTER
    user_location: Optional[LatLng] = None
    map_bounds: Optional[MapBounds] = None
    search_results: List[PropertyRecord] = field(default_factory=list)


@dataclass(frozen=True)
class StateEntry:
    key: str
    adapter: TypeAdapter
    default: Callable[[], Any]


STATE_ENTRIES: Dict[str, StateEntry] = {
    "filters": StateEntry("filters", TypeAdapter(FilterCriteria), FilterCriteria),
    "filter_open": StateEntry("filter-open", TypeAdapter(StrictBool), lambda: False),
    "selected_property": StateEntry(
        "selected-property", TypeAdapter(Optional[PropertyRecord]), lambda: None
    ),
    "map_view": StateEntry("map-view", TypeAdapter(MapView), lambda: "street"),
    "current_zoom": StateEntry("current-zoom", TypeAdapter(Zoom), lambda: DEFAULT_ZOOM),
    "map_center": StateEntry("map-center", TypeAdapter(LatLng), lambda: DEFAULT_MAP_CENTER),
    "user_location": StateEntry(
        "user-location", TypeAdapter(Optional[LatLng]), lambda: None
    ),
    "map_bounds": StateEntry("map-bounds", TypeAdapter(Optional[MapBounds]), lambda: None),
    "search_results": StateEntry(
        "search-results", TypeAdapter(List[PropertyRecord]), list
    ),
}


class AppStateStore:
    """
    Load, save and clear ``AppState`` entries through an injected port.

    An unreachable port never fails the caller: reads fall back to the
    entry's default and writes keep the validated value in memory only.
    """

    def __init__(self, port: StatePort, prefix: Optional[str] = None):
        self.port = port
        self.prefix = settings.STATE_KEY_PREFIX if prefix is None else prefix

    def _entry(self, name: str) -> StateEntry:
        try:
            return STATE_ENTRIES[name]
        except KeyError:
            raise KeyError(f"Unknown state entry: {name}") from None

    def _key(self, entry: StateEntry) -> str:
        return f"{self.prefix}{entry.key}"

    def _store_failed(self, operation: str, entry: StateEntry, exc: Exception) -> None:
        logger.warning(
            "app_state_store_failed",
            extra={"operation": operation, "key": self._key(entry), "error": str(exc)},
        )

    async def get(self, name: str) -> Any:
        """Load one entry, reverting to its default when missing, malformed or unreadable."""
        entry = self._entry(name)
        try:
            raw = await self.port.load(self._key(entry))
        except STATE_STORE_ERRORS as exc:
            self._store_failed("load", entry, exc)
            return entry.default()
        if raw is None:
            return entry.default()
        try:
            return entry.adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "app_state_invalid_entry",
                extra={"key": self._key(entry), "error_count": exc.error_count()},
            )
            return entry.default()

    async def set(self, name: str, value: Any) -> Any:
        """Validate and persist one entry. Returns the validated value."""
        entry = self._entry(name)
        validated = entry.adapter.validate_python(value)
        try:
            await self.port.save(
                self._key(entry),
                entry.adapter.dump_json(validated, by_alias=True).decode("utf-8"),
            )
        except STATE_STORE_ERRORS as exc:
            self._store_failed("save", entry, exc)
        return validated

    async def clear(self, name: str) -> Any:
        """Remove one entry and return its default."""
        entry = self._entry(name)
        try:
            await self.port.clear(self._key(entry))
        except STATE_STORE_ERRORS as exc:
            self._store_failed("clear", entry, exc)
        return entry.default()

    async def load(self) -> AppState:
        values = {}
        for state_field in fields(AppState):
            values[state_field.name] = await self.get(state_field.name)
        return AppState(**values)

    async def save(self, state: AppState) -> None:
        for state_field in fields(AppState):
            await self.set(state_field.name, getattr(state, state_field.name))

    async def clear_all(self) -> AppState:
        for name in STATE_ENTRIES:
            await self.clear(name)
        return AppState()
