"""
Pydantic schemas for the report / subscription API.

Separated from the route handlers so they are reusable across the
codebase (background workers, tests).

Field names follow the mobile client's wire format (camelCase such as
``hasPhoto``, ``reportId``). lat / lng / content are optional at the
schema level so that a missing value reaches the service and is reported
as MISSING_FIELDS / MISSING_LOCATION instead of a generic 422.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ReportRequest(BaseModel):
    """Request body for POST /api/v1/report."""
    model_config = ConfigDict(populate_by_name=True)

    lat: Optional[float] = Field(
        None, ge=-90.0, le=90.0,
        description="Latitude in decimal degrees",
        examples=[37.7749],
    )
    lng: Optional[float] = Field(
        None, ge=-180.0, le=180.0,
        description="Longitude in decimal degrees",
        examples=[-122.4194],
    )
    content: Optional[str] = Field(
        None,
        description="Report text; PII is scrubbed and length capped at 500",
        examples=["Street flooded near the park"],
    )
    language: Optional[str] = Field(None, examples=["en"])
    has_photo: bool = Field(False, alias="hasPhoto")
    category: Optional[str] = Field(
        None,
        description="safety | fun | lost (anything else becomes safety)",
        examples=["safety"],
    )


class SubscribeRequest(BaseModel):
    """Request body for POST /api/v1/subscribe."""
    lat: Optional[float] = Field(None, ge=-90.0, le=90.0, examples=[37.7749])
    lng: Optional[float] = Field(None, ge=-180.0, le=180.0, examples=[-122.4194])
    platform: Optional[str] = Field(None, examples=["android"])
    token: Optional[str] = Field(
        None, description="Push registration token for topic subscription",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ReportView(BaseModel):
    """A single report as returned to clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    zone: str
    content: str
    language: str
    has_photo: bool = Field(..., alias="hasPhoto")
    category: str
    category_icon: str = Field(..., alias="categoryIcon")
    timestamp: int = Field(..., description="Creation time, epoch ms, 15-minute buckets")
    expires: int = Field(..., description="Expiry time, epoch ms")


class ZoneReportsResponse(BaseModel):
    """Response for GET /api/v1/zone/{zone_id}."""
    zone: str
    category_filter: str
    reports: List[ReportView]
    count: int
    valid_categories: List[str]
    timestamp: int


class CategoryReportsResponse(BaseModel):
    """Response for GET /api/v1/reports/category/{category}."""
    model_config = ConfigDict(populate_by_name=True)

    category: str
    category_icon: str = Field(..., alias="categoryIcon")
    reports: List[ReportView]
    count: int
    timestamp: int
