"""Pydantic schemas for readings and the HTTP/WebSocket payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models.records import TemperatureCategory


class _CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RawReading(_CamelModel):
    """A reading as produced by the generator, before enrichment."""

    city: str
    temperature: float
    timestamp_utc: int
    unit: Literal["°C"]

    @field_validator("city", mode="before")
    @classmethod
    def _city_is_string(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("city must be a string")
        return value

    @field_validator("temperature", mode="before")
    @classmethod
    def _temperature_is_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("temperature must be a number")
        return value

    @field_validator("timestamp_utc", mode="before")
    @classmethod
    def _timestamp_is_integer(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("timestampUtc must be a number of epoch seconds")
        return value


class Coordinates(BaseModel):
    lat: float
    lng: float


class CityInfo(BaseModel):
    country: str
    timezone: str
    coordinates: Coordinates


class EnrichedReading(RawReading):
    """A reading after the enrichment hop; the record persisted by storage."""

    id: str = Field(..., min_length=1)
    processed_at: datetime
    source: str = Field(..., min_length=1)
    city_info: CityInfo
    iso_date: str
    temperature_category: TemperatureCategory


class AckStatus(str, Enum):
    connected = "connected"
    success = "success"
    error = "error"
    status = "status"


class Ack(BaseModel):
    """Frame sent back on the ingress connection for every inbound message."""

    status: AckStatus
    message: str
    timestamp: datetime
    kind: Optional[str] = None
    id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class InsertedReading(_CamelModel):
    id: str
    city: str
    temperature: float
    timestamp_utc: int


class InsertResponse(BaseModel):
    success: bool = True
    message: str = "Temperature reading stored."
    data: InsertedReading


class WebhookResponse(_CamelModel):
    success: bool = True
    message: str = "Reading enriched and stored."
    data: EnrichedReading
    api_response: Dict[str, Any] = Field(default_factory=dict)


class Pagination(BaseModel):
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)


class ReadingListResponse(BaseModel):
    success: bool = True
    data: List[EnrichedReading]
    pagination: Pagination


class CityStatsOut(_CamelModel):
    city: str
    count: int = Field(..., ge=0)
    avg_temp: float
    min_temp: float
    max_temp: float
    latest_temp: float
    latest_timestamp: int


class CityStatsResponse(BaseModel):
    success: bool = True
    city: str
    stats: CityStatsOut


class RangeBounds(_CamelModel):
    start_date: str
    end_date: str
    city: str


class RangeResponse(BaseModel):
    success: bool = True
    data: List[EnrichedReading]
    count: int
    range: RangeBounds


class LatestResponse(BaseModel):
    success: bool = True
    data: List[EnrichedReading]


class CategoryStatsOut(_CamelModel):
    category: TemperatureCategory
    count: int
    avg_temp: float


class AnalyticsOut(_CamelModel):
    period: str
    days: int
    total_records: int
    records_in_range: int
    per_city_stats: List[CityStatsOut] = Field(default_factory=list)
    per_category_stats: List[CategoryStatsOut] = Field(default_factory=list)


class AnalyticsResponse(BaseModel):
    success: bool = True
    analytics: AnalyticsOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BroadcastRequest(BaseModel):
    message: str = Field(..., min_length=1)


class BroadcastResponse(BaseModel):
    success: bool = True
    delivered: int
