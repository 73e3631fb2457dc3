"""
Wire and domain schemas shared by the API and the map client.

JSON keys keep the legacy column names (``OwnerName``, ``Lat`` ...); Python
code uses the snake_case field names.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResponseStatus(str, Enum):
    """Closed set of contact outcomes recorded per property."""

    NOT_CONTACTED = "Not contacted"
    UNABLE_TO_CONTACT = "Unable to contact"
    ANOTHER_PERSON_PHONE = "Another Person Phone"
    READY_TO_SELL = "Ready to Sell"
    NOT_INTERESTED_IN_SELL = "Not interested in Sell"
    INTERESTED_IN_BUY = "Interested in Buy"
    INTERESTED_IN_BUY_AND_SELL = "Interested in Buy and Sell"


RESPONSE_VALUES = frozenset(status.value for status in ResponseStatus)


def normalize_response(value: Optional[str]) -> str:
    """Map a stored response to the closed set, defaulting to Not contacted."""
    if value in RESPONSE_VALUES:
        return value
    return ResponseStatus.NOT_CONTACTED.value


class SearchColumn(str, Enum):
    """Columns a search may be restricted to."""

    AUTHORITY_AREA = "AuthorityArea"
    COLONY_NAME = "ColonyName"
    OWNER_NAME = "OwnerName"
    ADDRESS1 = "Address1"
    MOBILE_NO = "MobileNo"
    PK_PROPERTY_ID = "pkPropertyId"
    PID = "PID"
    PROPERTY_CATEGORY = "PropertyCategory"
    PROPERTY_TYPE = "PropertyType"
    PROPERTY_SUB_TYPE = "PropertySubType"
    MC_NAME = "McName"
    KHASARA_NO = "KhasaraNo"
    PLOT_NO = "PlotNo"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SearchColumn"]:
        """Return the member for ``value`` or None when it is not allow-listed."""
        try:
            return cls(value)
        except ValueError:
            return None


# Unrestricted searches match any of these (category is excluded).
DEFAULT_SEARCH_COLUMNS: Tuple[SearchColumn, ...] = (
    SearchColumn.AUTHORITY_AREA,
    SearchColumn.COLONY_NAME,
    SearchColumn.OWNER_NAME,
    SearchColumn.ADDRESS1,
    SearchColumn.MOBILE_NO,
    SearchColumn.PK_PROPERTY_ID,
    SearchColumn.PID,
    SearchColumn.PROPERTY_TYPE,
    SearchColumn.PROPERTY_SUB_TYPE,
    SearchColumn.MC_NAME,
    SearchColumn.KHASARA_NO,
    SearchColumn.PLOT_NO,
)

CUSTOM_SIZE_RANGE = "custom"

# Plot-size buckets as half-open [lower, upper) intervals; None is unbounded.
SIZE_BUCKETS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "below_80": (None, 80),
    "80_to_110": (80, 110),
    "110_to_140": (110, 140),
    "140_to_180": (140, 180),
    "180_to_250": (180, 250),
    "250_to_300": (250, 300),
    "300_to_450": (300, 450),
    "450_to_600": (450, 600),
    "600_to_1000": (600, 1000),
    "1000_to_1500": (1000, 1500),
    "1500_plus": (1500, None),
}

ZERO_DUE_DETAILS: Dict[str, Any] = {
    "pkDueId": 0,
    "PtaxArrear": 0,
    "PtaxDemand": 0,
    "TotalDue": 0,
}


def decode_json_text(value: Any) -> Any:
    """Decode a JSON text column; malformed or blank text decodes to None."""
    if not isinstance(value, (str, bytes)):
        return value
    if not value or not value.strip():
        return None
    try:
        return json.loads(value)
    except ValueError:
        return None


class PropertyRecord(BaseModel):
    """A government-tracked parcel as served by the list endpoint."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    pk_property_id: Optional[int] = Field(None, alias="pkPropertyId")
    fk_district_id: Optional[int] = Field(None, alias="fkDistrictId")
    fk_ulb_id: Optional[int] = Field(None, alias="fkULBId")
    ulb_code: Optional[str] = Field(None, alias="ULBCode")
    mc_name: Optional[str] = Field(None, alias="McName")
    khasara_no: Optional[str] = Field(None, alias="KhasaraNo")
    authority_area: Optional[str] = Field(None, alias="AuthorityArea")
    colony_name: Optional[str] = Field(None, alias="ColonyName")
    fk_colony_survey_id: Optional[int] = Field(None, alias="fkColonySurveyId")
    property_category: Optional[str] = Field(None, alias="PropertyCategory")
    property_type: Optional[str] = Field(None, alias="PropertyType")
    property_sub_type: Optional[str] = Field(None, alias="PropertySubType")
    owner_name: Optional[str] = Field(None, alias="OwnerName")
    owner_name_ndc: Optional[str] = Field(None, alias="OwnerNameNDC")
    address1: Optional[str] = Field(None, alias="Address1")
    mobile_no: Optional[str] = Field(None, alias="MobileNo")
    pid: Optional[str] = Field(None, alias="PID")
    pid_ndc: Optional[str] = Field(None, alias="PIDNDC")
    unit: Optional[str] = Field(None, alias="Unit")
    # Older exports store sizes as free text; unparseable values are kept.
    plot_size: Union[float, str, None] = Field(None, alias="PlotSize")
    latitude: Optional[float] = Field(None, alias="Lat")
    longitude: Optional[float] = Field(None, alias="Long")
    image_view_link: Optional[str] = Field(None, alias="ImageViewLink")
    linked_pk_property_id: Optional[int] = Field(None, alias="LinkedpkPropertyId")
    integrated_count: Optional[int] = Field(None, alias="IntegratedCount")
    locations_data_json: Any = Field(None, alias="LocationsDataJson")
    page_no: Optional[int] = Field(None, alias="PageNo")
    total_record: Optional[int] = Field(None, alias="TotalRecord")
    is_authorised: Optional[int] = Field(None, alias="IsAuthorised")
    is_data_verified_2023: Optional[int] = Field(None, alias="IsDataVerified2023")
    possession_file: Any = Field(None, alias="PossessionFile")
    due_details: Optional[Dict[str, Any]] = Field(None, alias="DueDetails")
    plot_no: Optional[str] = Field(None, alias="PlotNo")
    claim_count: Optional[int] = Field(None, alias="ClaimCount")
    integrated_count_cmc_dmc: Optional[int] = Field(None, alias="IntegratedCountCMCDMC")
    fk_property_sub_type_id: Optional[int] = Field(None, alias="fkPropertySubTypeId")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    response: Optional[str] = None
    remark: Optional[str] = None

    @field_validator("locations_data_json", "possession_file", mode="before")
    @classmethod
    def _decode_json_columns(cls, value: Any) -> Any:
        return decode_json_text(value)

    @field_validator("due_details", mode="before")
    @classmethod
    def _decode_due_details(cls, value: Any) -> Any:
        decoded = decode_json_text(value)
        return decoded if isinstance(decoded, dict) else None

    @property
    def response_status(self) -> str:
        return normalize_response(self.response)

    @property
    def has_contact(self) -> bool:
        return bool(self.mobile_no)


class MapBounds(BaseModel):
    """Rectangular lat/lng viewport window."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    min_lat: float = Field(alias="minLat")
    max_lat: float = Field(alias="maxLat")
    min_lng: float = Field(alias="minLng")
    max_lng: float = Field(alias="maxLng")

    def contains(self, latitude: float, longitude: float) -> bool:
        """Closed-interval containment check."""
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lng <= longitude <= self.max_lng
        )

    def moved_beyond(self, other: Optional["MapBounds"], epsilon: float) -> bool:
        """True when any edge differs from ``other`` by more than ``epsilon``."""
        if other is None:
            return True
        return (
            abs(self.min_lat - other.min_lat) > epsilon
            or abs(self.max_lat - other.max_lat) > epsilon
            or abs(self.min_lng - other.min_lng) > epsilon
            or abs(self.max_lng - other.max_lng) > epsilon
        )


class FilterCriteria(BaseModel):
    """User-selected filters; empty values mean no constraint."""

    model_config = ConfigDict(populate_by_name=True)

    search: str = ""
    search_where: str = Field("", alias="searchWhere")
    property_category: str = Field("", alias="propertyCategory")
    colony_name: str = Field("", alias="colonyName")
    response_status: str = Field("", alias="responseStatus")
    has_contact: Optional[bool] = Field(None, alias="hasContact")
    size_range: str = Field("", alias="sizeRange")
    min_size: float = Field(0, alias="minSize")
    max_size: float = Field(0, alias="maxSize")

    @property
    def search_term(self) -> str:
        return self.search.strip()

    @property
    def has_size_filter(self) -> bool:
        return bool(self.size_range)

    def fingerprint(self) -> str:
        """Order-independent structural hash of every field."""
        payload = json.dumps(
            self.model_dump(mode="json"),
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class PropertyUpdate(BaseModel):
    """POST body for recording a contact outcome."""

    id: Optional[int] = None
    remark: Optional[str] = None
    response: Optional[str] = None


class UpdateResult(BaseModel):
    success: bool
    message: str
