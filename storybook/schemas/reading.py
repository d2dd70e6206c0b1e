from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from storybook.schemas.story import StoryResponse


class ReadingProgress(BaseModel):
    last_page_reached: int
    is_completed: bool


class RecordReadingResponse(BaseModel):
    message: str
    progress: ReadingProgress


class ProgressUpdate(BaseModel):
    last_page_reached: Optional[int] = Field(None, ge=0)
    additional_time: Optional[int] = Field(None, ge=0)  # seconds
    is_completed: Optional[bool] = None


class ProgressUpdateResponse(BaseModel):
    message: str
    total_reading_time: int


class QuizResultCreate(BaseModel):
    score: int
    total: int


class QuizResultResponse(BaseModel):
    message: str
    quiz_score: Optional[int]
    points_awarded: bool


class ReadingRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    last_read: Optional[datetime]
    times_read: int
    is_favorite: bool
    last_page_reached: int
    total_reading_time: int
    is_completed: bool
    quiz_score: Optional[int]
    quiz_total: Optional[int]


class HistoryItem(StoryResponse):
    reading: ReadingRecordResponse


class FavoriteToggleResponse(BaseModel):
    is_favorite: bool
    message: str


class FavoriteCheckResponse(BaseModel):
    is_favorite: bool
