"""
Reading history, progress, quizzes and favorites.

Every interaction between a user and a story lives on a single ReadingRecord,
created the first time the user reads or favorites the story.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storybook.models import ReadingRecord, Story, User
from storybook.services import notification_service

logger = logging.getLogger(__name__)

COMPLETION_POINTS = 50
POINTS_PER_CORRECT_ANSWER = 5
MAX_QUIZ_QUESTIONS = 100


class InvalidQuizResultError(ValueError):
    """Raised when a submitted quiz score is impossible or suspicious."""


def get_record(db: Session, user_id: UUID, story_id: UUID) -> Optional[ReadingRecord]:
    return (
        db.query(ReadingRecord)
        .filter(ReadingRecord.user_id == user_id, ReadingRecord.story_id == story_id)
        .first()
    )


def get_or_create_record(db: Session, user_id: UUID, story_id: UUID) -> ReadingRecord:
    record = get_record(db, user_id, story_id)
    if record is not None:
        return record

    record = ReadingRecord(
        user_id=user_id,
        story_id=story_id,
        times_read=0,
        is_favorite=False,
        last_page_reached=0,
        total_reading_time=0,
        is_completed=False,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent first read of the same story by the same user
        db.rollback()
        record = get_record(db, user_id, story_id)
        if record is None:
            raise
        logger.debug("Reading record race resolved: user_id=%s, story_id=%s", user_id, story_id)
    return record


def record_reading(db: Session, user: User, story: Story) -> ReadingRecord:
    """Count one read of a story: bumps the user's record and the story's global views."""
    record = get_or_create_record(db, user.id, story.id)
    record.last_read = datetime.utcnow()
    record.times_read = (record.times_read or 0) + 1
    story.views = (story.views or 0) + 1
    db.commit()
    db.refresh(record)
    logger.info("Recorded read: user_id=%s, story_id=%s, times_read=%d", user.id, story.id, record.times_read)
    return record


def update_progress(
    db: Session,
    user: User,
    record: ReadingRecord,
    last_page_reached: Optional[int] = None,
    additional_time: Optional[int] = None,
    is_completed: Optional[bool] = None,
) -> ReadingRecord:
    """
    Apply a progress update. Finishing a story for the first time awards
    completion points and an achievement notification.
    """
    if last_page_reached is not None:
        record.last_page_reached = last_page_reached

    if additional_time is not None:
        record.total_reading_time = (record.total_reading_time or 0) + additional_time

    if is_completed is not None:
        newly_completed = is_completed and not record.is_completed
        record.is_completed = is_completed

        if newly_completed:
            user.points = (user.points or 0) + COMPLETION_POINTS
            notification_service.notify_story_completed(db, user.id, record.story, COMPLETION_POINTS)
            logger.info("User %s completed story %s", user.id, record.story_id)

    db.commit()
    db.refresh(record)
    return record


def validate_quiz_result(score, total) -> None:
    if isinstance(score, bool) or isinstance(total, bool):
        raise InvalidQuizResultError("Invalid quiz data format")
    if total < 1 or score < 0:
        raise InvalidQuizResultError("Invalid score or total value")
    if score > total:
        raise InvalidQuizResultError("Score cannot exceed total questions")
    if total > MAX_QUIZ_QUESTIONS:
        raise InvalidQuizResultError("Suspicious quiz total detected")


def save_quiz_result(db: Session, user: User, story: Story, score: int, total: int) -> Tuple[ReadingRecord, int]:
    """
    Keep the user's best quiz score for a story.

    Returns the record and the number of points awarded (only newly gained
    correct answers earn points).
    """
    validate_quiz_result(score, total)

    record = get_or_create_record(db, user.id, story.id)
    awarded = 0
    if record.quiz_score is None or score > record.quiz_score:
        gained = score - (record.quiz_score or 0)
        record.quiz_score = score
        record.quiz_total = total

        if gained > 0:
            awarded = gained * POINTS_PER_CORRECT_ANSWER
            user.points = (user.points or 0) + awarded

        if score == total:
            notification_service.notify_perfect_quiz(db, user.id, story)

    db.commit()
    db.refresh(record)
    return record, awarded


def toggle_favorite(db: Session, user: User, story: Story) -> ReadingRecord:
    record = get_or_create_record(db, user.id, story.id)
    record.is_favorite = not record.is_favorite
    db.commit()
    db.refresh(record)
    return record


def is_favorite(db: Session, user_id: UUID, story_id: UUID) -> bool:
    record = get_record(db, user_id, story_id)
    return bool(record and record.is_favorite)


def list_favorites(db: Session, user_id: UUID) -> List[Story]:
    records = (
        db.query(ReadingRecord)
        .options(selectinload(ReadingRecord.story))
        .filter(ReadingRecord.user_id == user_id, ReadingRecord.is_favorite.is_(True))
        .order_by(ReadingRecord.updated_at.desc(), ReadingRecord.id.desc())
        .all()
    )
    return [record.story for record in records if record.story is not None]


def list_history(db: Session, user_id: UUID) -> List[ReadingRecord]:
    """Records the user has actually read, most recently read first."""
    return (
        db.query(ReadingRecord)
        .options(selectinload(ReadingRecord.story))
        .filter(ReadingRecord.user_id == user_id, ReadingRecord.last_read.isnot(None))
        .order_by(ReadingRecord.last_read.desc(), ReadingRecord.id.desc())
        .all()
    )
