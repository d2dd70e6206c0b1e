from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from uuid import UUID
from storybook.models import ReviewType


class ReviewCreate(BaseModel):
    story_id: Optional[UUID] = None
    type: ReviewType = ReviewType.STORY
    rating: Optional[int] = None
    comment: Optional[str] = None
    guest_name: Optional[str] = None
    guest_avatar: Optional[str] = None


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[UUID]
    story_id: Optional[UUID]
    type: ReviewType
    rating: int
    comment: Optional[str]
    is_approved: bool
    is_featured: bool
    guest_name: Optional[str]
    guest_avatar: Optional[str]
    user_name: Optional[str]
    created_at: datetime


class ReviewCreateResponse(BaseModel):
    message: str
    review: ReviewResponse


class ReviewActionResponse(BaseModel):
    message: str
    review: ReviewResponse


class StoryReviewsResponse(BaseModel):
    reviews: list[ReviewResponse]
    total_reviews: int
    average_rating: float
