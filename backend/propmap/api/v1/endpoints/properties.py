"""
Property list/search and contact-outcome update endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from propmap.core.database import get_db, is_connection_failure
from propmap.core.metrics import record_property_update
from propmap.schemas.property import PropertyRecord, PropertyUpdate, UpdateResult
from propmap.services.property_query import InvalidUpdate, PropertyQuery, PropertyService

router = APIRouter()


@router.get("", response_model=List[PropertyRecord])
async def list_properties(
    min_lat: float = Query(0, alias="minLat"),
    max_lat: float = Query(0, alias="maxLat"),
    min_lng: float = Query(0, alias="minLng"),
    max_lng: float = Query(0, alias="maxLng"),
    search: str = Query("", description="Substring to search for; ignores bounds"),
    where: str = Query("", description="Restrict the search to one allow-listed column"),
    type: str = Query("", description="Exact property category"),
    min_size: float = Query(0),
    max_size: float = Query(0),
    size_range: str = Query("", description="Named size bucket or 'custom'"),
    response_status: str = Query(""),
    has_contact: Optional[str] = Query(None, description="'true' or 'false'"),
    db: AsyncSession = Depends(get_db),
):
    """
    List properties inside the viewport, or search globally when ``search``
    is given. At most ``PROPERTY_QUERY_LIMIT`` rows are returned.
    """
    query = PropertyQuery(
        min_lat=min_lat,
        max_lat=max_lat,
        min_lng=min_lng,
        max_lng=max_lng,
        search=search,
        where=where,
        type=type,
        min_size=min_size,
        max_size=max_size,
        size_range=size_range,
        response_status=response_status,
        has_contact=has_contact or "",
    )
    service = PropertyService(db)
    return await service.list_properties(query)


@router.post("", response_model=UpdateResult)
async def update_property(
    payload: PropertyUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Record a contact outcome and/or remark for one property."""
    service = PropertyService(db)
    try:
        await service.update_property(
            payload.id, remark=payload.remark, response=payload.response
        )
    except InvalidUpdate as exc:
        record_property_update("rejected")
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError as exc:
        record_property_update("failed")
        if is_connection_failure(exc):
            raise
        raise HTTPException(status_code=500, detail="Update failed")

    record_property_update("updated")
    return UpdateResult(success=True, message="Updated successfully")
