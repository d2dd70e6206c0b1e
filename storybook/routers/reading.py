from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from storybook.core.auth import get_current_user
from storybook.database import get_db
from storybook.models import Story, User
from storybook.schemas.reading import (
    FavoriteCheckResponse,
    FavoriteToggleResponse,
    HistoryItem,
    ProgressUpdate,
    ProgressUpdateResponse,
    QuizResultCreate,
    QuizResultResponse,
    ReadingProgress,
    ReadingRecordResponse,
    RecordReadingResponse,
)
from storybook.schemas.story import StoryResponse
from storybook.services import reading_service
from storybook.services.reading_service import InvalidQuizResultError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["reading"])


def _get_story_or_404(db: Session, story_id: UUID) -> Story:
    story = db.get(Story, story_id)
    if not story:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found",
        )
    return story


@router.get("/history", response_model=list[HistoryItem])
def get_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Stories the user has read, most recently read first."""
    items = []
    for record in reading_service.list_history(db, user.id):
        if record.story is None:
            continue
        story_data = StoryResponse.model_validate(record.story).model_dump()
        items.append(HistoryItem(**story_data, reading=ReadingRecordResponse.model_validate(record)))
    return items


@router.post("/history/{story_id}", response_model=RecordReadingResponse)
def record_reading(
    story_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    story = _get_story_or_404(db, story_id)
    record = reading_service.record_reading(db, user, story)
    return RecordReadingResponse(
        message="Reading history updated",
        progress=ReadingProgress(
            last_page_reached=record.last_page_reached or 0,
            is_completed=bool(record.is_completed),
        ),
    )


@router.put("/history/{story_id}/progress", response_model=ProgressUpdateResponse)
def update_progress(
    story_id: UUID,
    payload: ProgressUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    record = reading_service.get_record(db, user.id, story_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reading record not found",
        )

    record = reading_service.update_progress(
        db,
        user,
        record,
        last_page_reached=payload.last_page_reached,
        additional_time=payload.additional_time,
        is_completed=payload.is_completed,
    )
    return ProgressUpdateResponse(
        message="Progress updated",
        total_reading_time=record.total_reading_time or 0,
    )


@router.post("/history/{story_id}/quiz", response_model=QuizResultResponse)
def save_quiz_result(
    story_id: UUID,
    payload: QuizResultCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    story = _get_story_or_404(db, story_id)

    try:
        record, awarded = reading_service.save_quiz_result(db, user, story, payload.score, payload.total)
    except InvalidQuizResultError as e:
        logger.warning("Rejected quiz result from user %s for story %s: %s", user.id, story_id, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return QuizResultResponse(
        message="Quiz result saved",
        quiz_score=record.quiz_score,
        points_awarded=awarded > 0,
    )


@router.get("/favorites", response_model=list[StoryResponse])
def get_favorites(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return reading_service.list_favorites(db, user.id)


@router.get("/favorites/check/{story_id}", response_model=FavoriteCheckResponse)
def check_favorite(
    story_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return FavoriteCheckResponse(is_favorite=reading_service.is_favorite(db, user.id, story_id))


@router.post("/favorites/{story_id}", response_model=FavoriteToggleResponse)
def toggle_favorite(
    story_id: UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    story = _get_story_or_404(db, story_id)
    record = reading_service.toggle_favorite(db, user, story)
    return FavoriteToggleResponse(
        is_favorite=record.is_favorite,
        message="Added to favorites" if record.is_favorite else "Removed from favorites",
    )
