"""HTTP routes for the storage and query service."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from app.auth import Principal, require_admin, require_user
from app.schemas import (
    AnalyticsOut,
    AnalyticsResponse,
    CategoryStatsOut,
    CityStatsOut,
    CityStatsResponse,
    EnrichedReading,
    InsertedReading,
    InsertResponse,
    LatestResponse,
    MessageResponse,
    Pagination,
    RangeBounds,
    RangeResponse,
    ReadingListResponse,
)
from services.aggregator import CityStats
from services.readings import ReadingService, parse_date_bound

router = APIRouter(prefix="/api/temperature", tags=["temperature"])


def get_reading_service(request: Request) -> ReadingService:
    return request.app.state.readings


def _city_stats_out(stats: CityStats) -> CityStatsOut:
    return CityStatsOut(
        city=stats.city,
        count=stats.count,
        avg_temp=stats.avg_temp,
        min_temp=stats.min_temp,
        max_temp=stats.max_temp,
        latest_temp=stats.latest_temp,
        latest_timestamp=stats.latest_timestamp,
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=InsertResponse,
    summary="Store an enriched reading (anonymous, used by the enrichment relay).",
)
def insert_reading(
    payload: Any = Body(...),
    service: ReadingService = Depends(get_reading_service),
) -> InsertResponse:
    reading = service.insert(payload)
    return InsertResponse(
        data=InsertedReading(
            id=reading.id,
            city=reading.city,
            temperature=reading.temperature,
            timestamp_utc=reading.timestamp_utc,
        )
    )


@router.get(
    "",
    response_model=ReadingListResponse,
    summary="List readings newest first, optionally for one city.",
)
def list_readings(
    city: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    page: int = Query(1, ge=1),
    _principal: Principal = Depends(require_user),
    service: ReadingService = Depends(get_reading_service),
) -> ReadingListResponse:
    result = service.list_readings(city=city, limit=limit, page=page)
    return ReadingListResponse(
        data=result.items,
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            pages=result.pages,
        ),
    )


@router.get(
    "/stats/{city}",
    response_model=CityStatsResponse,
    summary="Aggregate statistics for one city, optionally within a date window.",
)
def city_stats(
    city: str,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    _principal: Principal = Depends(require_user),
    service: ReadingService = Depends(get_reading_service),
) -> CityStatsResponse:
    start = parse_date_bound(start_date) if start_date else None
    end = parse_date_bound(end_date) if end_date else None
    stats = service.stats_by_city(city, start, end)
    return CityStatsResponse(city=city, stats=_city_stats_out(stats))


@router.get(
    "/range",
    response_model=RangeResponse,
    summary="Readings whose timestamp falls within inclusive bounds.",
)
def readings_in_range(
    start_date: str = Query(..., alias="startDate"),
    end_date: str = Query(..., alias="endDate"),
    city: Optional[str] = Query(None),
    _principal: Principal = Depends(require_user),
    service: ReadingService = Depends(get_reading_service),
) -> RangeResponse:
    data = service.range_query(parse_date_bound(start_date), parse_date_bound(end_date), city)
    return RangeResponse(
        data=data,
        count=len(data),
        range=RangeBounds(start_date=start_date, end_date=end_date, city=city or "all"),
    )


@router.get(
    "/latest",
    response_model=LatestResponse,
    summary="Most recent readings, globally or for one city.",
)
def latest_readings(
    city: Optional[str] = Query(None),
    limit: int = Query(3, ge=1, le=100),
    _principal: Principal = Depends(require_user),
    service: ReadingService = Depends(get_reading_service),
) -> LatestResponse:
    return LatestResponse(data=service.latest(city=city, limit=limit))


@router.get(
    "/analytics",
    response_model=AnalyticsResponse,
    summary="Administrative rollup over the last N days.",
)
def analytics(
    days: int = Query(7, ge=1, le=3650),
    _principal: Principal = Depends(require_admin),
    service: ReadingService = Depends(get_reading_service),
) -> AnalyticsResponse:
    result = service.analytics(days)
    return AnalyticsResponse(
        analytics=AnalyticsOut(
            period=f"{result.days} days",
            days=result.days,
            total_records=result.total_records,
            records_in_range=result.records_in_range,
            per_city_stats=[_city_stats_out(stats) for stats in result.per_city_stats],
            per_category_stats=[
                CategoryStatsOut(
                    category=stats.category,
                    count=stats.count,
                    avg_temp=stats.avg_temp,
                )
                for stats in result.per_category_stats
            ],
        )
    )


@router.get(
    "/{reading_id}",
    response_model=EnrichedReading,
    summary="Fetch a single reading by id.",
)
def get_reading(
    reading_id: str,
    _principal: Principal = Depends(require_user),
    service: ReadingService = Depends(get_reading_service),
) -> EnrichedReading:
    return service.get(reading_id)


@router.delete(
    "/{reading_id}",
    response_model=MessageResponse,
    summary="Delete a reading by id (administrators only).",
)
def delete_reading(
    reading_id: str,
    _principal: Principal = Depends(require_admin),
    service: ReadingService = Depends(get_reading_service),
) -> MessageResponse:
    service.delete(reading_id)
    return MessageResponse(message=f"Reading {reading_id} deleted.")
