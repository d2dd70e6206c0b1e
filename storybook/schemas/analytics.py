from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID


class PageVisitCreate(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=100)
    url: str = Field(..., min_length=1, max_length=500)
    referrer: Optional[str] = Field(None, max_length=500)
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    story_id: Optional[UUID] = None
    duration: Optional[int] = Field(None, ge=0)


class ShareCreate(BaseModel):
    story_id: UUID
    platform: str = Field(..., min_length=1, max_length=50)


class TrackResponse(BaseModel):
    success: bool
