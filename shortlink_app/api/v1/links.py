"""
Administrative link endpoints (the caller-facing action layer).

Domain errors from the services are translated to HTTP here. The
"no deleting a link that has clicks" policy also lives here.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shortlink_app.dependencies import (
    get_activity_recorder,
    get_analytics_service,
    get_link_registry,
)
from shortlink_app.exceptions import (
    CodeCapacityExhaustedError,
    LinkNotFoundError,
    LinkValidationError,
    ShortCodeConflictError,
)
from shortlink_app.models.link import LinkStatus
from shortlink_app.schemas.activity import ActivityFilter, ActivityPage
from shortlink_app.schemas.analytics import (
    DeviceShare,
    GlobalStats,
    LinkAnalytics,
    ReferrerShare,
    RollingTotals,
    TrendPoint,
)
from shortlink_app.schemas.link import (
    LinkCreate,
    LinkResponse,
    LinkStatusUpdate,
    LinkUpdate,
    LinkWithClicks,
)
from shortlink_app.services.activity_recorder import ActivityRecorder
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_registry import LinkRegistry

router = APIRouter(prefix="/links", tags=["links"])
stats_router = APIRouter(tags=["stats"])


async def _existing_link(link_id: str, registry: LinkRegistry):
    try:
        return await registry.get_link(link_id)
    except LinkNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Link not found"
        )


@router.post("/", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_data: LinkCreate,
    registry: LinkRegistry = Depends(get_link_registry)
):
    try:
        return await registry.create_link(
            owner_id=link_data.user_id,
            long_link=link_data.long_link,
            title=link_data.title,
            description=link_data.description,
            tags=link_data.tags,
            requested_code=link_data.short_code,
        )
    except LinkValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ShortCodeConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except CodeCapacityExhaustedError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/", response_model=List[LinkWithClicks])
async def list_links(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    link_status: Optional[LinkStatus] = Query(None, alias="status"),
    registry: LinkRegistry = Depends(get_link_registry)
):
    """All links, newest first, with click counts"""
    rows = await registry.list_links(limit=limit, offset=offset, status=link_status)
    return [
        LinkWithClicks.model_validate(link).model_copy(update={"clicks": clicks})
        for link, clicks in rows
    ]


@router.get("/{link_id}", response_model=LinkResponse)
async def get_link(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry)
):
    return await _existing_link(link_id, registry)


@router.patch("/{link_id}", response_model=LinkResponse)
async def update_link(
    link_id: str,
    changes: LinkUpdate,
    registry: LinkRegistry = Depends(get_link_registry)
):
    try:
        return await registry.update_link(link_id, changes)
    except LinkNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")
    except LinkValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except ShortCodeConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.put("/{link_id}/status", response_model=LinkResponse)
async def set_link_status(
    link_id: str,
    body: LinkStatusUpdate,
    registry: LinkRegistry = Depends(get_link_registry)
):
    """Freeze or re-activate a link"""
    try:
        return await registry.set_status(link_id, body.status)
    except LinkNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    """Delete a link that has never been clicked"""
    await _existing_link(link_id, registry)

    clicks = await analytics.click_count(link_id)
    if clicks > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Link has {clicks} recorded clicks; delete its activity first"
        )

    try:
        await registry.delete_link(link_id)
    except LinkNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")


@router.get("/{link_id}/clicks", response_model=int)
async def get_link_clicks(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return await analytics.click_count(link_id)


@router.get("/{link_id}/activities", response_model=ActivityPage)
async def list_link_activities(
    link_id: str,
    device: Optional[str] = None,
    fingerprint: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    filters = ActivityFilter(
        link_id=link_id,
        device=device,
        fingerprint=fingerprint,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
    return await analytics.find_activities(filters)


@router.delete("/{link_id}/activities")
async def delete_link_activities(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    recorder: ActivityRecorder = Depends(get_activity_recorder)
):
    """Remove every recorded click of a link (needed before deleting it)"""
    await _existing_link(link_id, registry)
    deleted = await recorder.delete_for_link(link_id)
    return {"deleted": deleted}


@router.get("/{link_id}/analytics", response_model=LinkAnalytics)
async def get_link_analytics(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return await analytics.link_summary(link_id)


@router.get("/{link_id}/analytics/trend", response_model=List[TrendPoint])
async def get_click_trend(
    link_id: str,
    days: int = Query(7, ge=1, le=366),
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return list(await analytics.click_trend(link_id, days))


@router.get("/{link_id}/analytics/devices", response_model=List[DeviceShare])
async def get_device_distribution(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return await analytics.device_distribution(link_id)


@router.get("/{link_id}/analytics/referrers", response_model=List[ReferrerShare])
async def get_referrer_distribution(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return await analytics.referrer_distribution(link_id)


@router.get("/{link_id}/analytics/unique-visitors")
async def get_unique_visitors(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return {"unique_visitors": await analytics.unique_visitors(link_id)}


@router.get("/{link_id}/analytics/totals", response_model=RollingTotals)
async def get_rolling_totals(
    link_id: str,
    registry: LinkRegistry = Depends(get_link_registry),
    analytics: AnalyticsService = Depends(get_analytics_service)
):
    await _existing_link(link_id, registry)
    return await analytics.rolling_totals(link_id)


@stats_router.get("/stats", response_model=GlobalStats)
async def get_global_stats(analytics: AnalyticsService = Depends(get_analytics_service)):
    """Total links and total clicks across the system"""
    return await analytics.global_stats()
