"""HTTP client for the property list/update endpoint."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from propmap.core.config import settings
from propmap.core.metrics import record_external_api_retry
from propmap.schemas.property import (
    SIZE_BUCKETS,
    ZERO_DUE_DETAILS,
    FilterCriteria,
    MapBounds,
    PropertyRecord,
)

logger = logging.getLogger(__name__)


class PropertyApiError(Exception):
    """A list, search or update call failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _is_retryable(exc: BaseException) -> bool:
    """Retry transport failures and 5xx responses, never client errors."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


def _record_retry(retry_state):
    """Tenacity before_sleep callback to track property API retries."""
    record_external_api_retry("property_api")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return f"HTTP error {response.status_code}: {body['error']}"
    return f"HTTP error {response.status_code}"


def filter_params(filters: FilterCriteria) -> Dict[str, str]:
    """Query parameters for the non-bounds filter fields."""
    params: Dict[str, str] = {}
    if filters.property_category:
        params["type"] = filters.property_category
    if filters.size_range in SIZE_BUCKETS:
        params["size_range"] = filters.size_range
    elif filters.size_range:
        params["size_range"] = filters.size_range
        if filters.min_size > 0:
            params["min_size"] = str(filters.min_size)
        if filters.max_size > 0:
            params["max_size"] = str(filters.max_size)
    if filters.response_status:
        params["response_status"] = filters.response_status
    if filters.has_contact is not None:
        params["has_contact"] = "true" if filters.has_contact else "false"
    return params


def parse_records(payload: Any) -> List[PropertyRecord]:
    """Validate a list payload, filling the client-side defaults."""
    if not isinstance(payload, list):
        raise PropertyApiError("Unexpected response payload: expected a list")

    records = []
    for item in payload:
        if not isinstance(item, dict):
            raise PropertyApiError("Unexpected response payload: expected objects")
        item = dict(item)
        item["id"] = item.get("id") or item.get("pkPropertyId")
        if not item.get("DueDetails"):
            item["DueDetails"] = dict(ZERO_DUE_DETAILS)
        try:
            records.append(PropertyRecord.model_validate(item))
        except ValidationError as exc:
            raise PropertyApiError(f"Malformed property record: {exc.error_count()} errors") from exc
    return records


class PropertyApiClient:
    """
    Async client for the property endpoint with retry logic.

    Example usage:
        async with PropertyApiClient() as api:
            records = await api.fetch_in_bounds(bounds, FilterCriteria())
            await api.update_property(42, response="Ready to Sell")
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: Optional[int] = None,
        retry_backoff: Optional[float] = None,
    ):
        self.base_url = base_url or settings.PROPERTY_API_URL
        self.max_attempts = max_attempts or settings.PROPERTY_API_MAX_ATTEMPTS
        self.retry_backoff = (
            settings.PROPERTY_API_RETRY_BACKOFF if retry_backoff is None else retry_backoff
        )
        self.client = client or httpx.AsyncClient(timeout=settings.PROPERTY_API_TIMEOUT)

    async def __aenter__(self) -> "PropertyApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    async def _request(self, method: str, **kwargs) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=10),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_record_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self.client.request(
                        method,
                        self.base_url,
                        headers={"Accept": "application/json"},
                        **kwargs,
                    )
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PropertyApiError(
                _error_message(exc.response), status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise PropertyApiError(f"Request failed: {exc}") from exc
        return response

    async def _get_records(self, params: Dict[str, str]) -> List[PropertyRecord]:
        response = await self._request("GET", params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise PropertyApiError("Response was not valid JSON") from exc
        return parse_records(payload)

    async def fetch_in_bounds(
        self, bounds: MapBounds, filters: Optional[FilterCriteria] = None
    ) -> List[PropertyRecord]:
        """Fetch properties inside ``bounds`` with the server-side filters applied."""
        params = {
            "minLat": str(bounds.min_lat),
            "maxLat": str(bounds.max_lat),
            "minLng": str(bounds.min_lng),
            "maxLng": str(bounds.max_lng),
        }
        params.update(filter_params(filters or FilterCriteria()))
        records = await self._get_records(params)
        logger.info(
            "property_api_bounds_fetch",
            extra={"record_count": len(records), "params": params},
        )
        return records

    async def search(
        self, term: str, filters: Optional[FilterCriteria] = None
    ) -> List[PropertyRecord]:
        """Global search, ignoring the viewport."""
        filters = filters or FilterCriteria()
        params = {"search": term}
        if filters.search_where:
            params["where"] = filters.search_where
        params.update(filter_params(filters))
        records = await self._get_records(params)
        logger.info(
            "property_api_search",
            extra={"record_count": len(records), "params": params},
        )
        return records

    async def update_property(
        self,
        property_id: int,
        response: Optional[str] = None,
        remark: Optional[str] = None,
    ) -> bool:
        """Record a contact outcome and/or remark. Returns the server's success flag."""
        body: Dict[str, Any] = {"id": property_id}
        if response is not None:
            body["response"] = response
        if remark is not None:
            body["remark"] = remark
        result = await self._request("POST", json=body)
        try:
            payload = result.json()
        except ValueError as exc:
            raise PropertyApiError("Response was not valid JSON") from exc
        return isinstance(payload, dict) and payload.get("success") is True
