"""
Read-side access to stories and reading history for the recommendation engine.

The engine only talks to these two classes, so it can be exercised against any
session (or a stand-in object with the same methods) without knowing how the
data is stored.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from storybook.models import ReadingRecord, Story

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """A reading record joined with the tag/category data of its story."""
    story_id: UUID
    tags: tuple[str, ...]
    category_label: Optional[str]
    times_read: int
    is_favorite: bool


class StoryStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, story_id: UUID) -> Optional[Story]:
        return self.db.get(Story, story_id)

    def find_all(self, *criteria, order_by: Sequence = (), limit: Optional[int] = None) -> list[Story]:
        query = self.db.query(Story)
        if criteria:
            query = query.filter(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_ids(self, *criteria, order_by: Sequence = ()) -> list[UUID]:
        query = self.db.query(Story.id)
        if criteria:
            query = query.filter(*criteria)
        if order_by:
            query = query.order_by(*order_by)
        return [row[0] for row in query.all()]

    def find_many(self, story_ids: Iterable[UUID]) -> list[Story]:
        """Load stories by id, returned in the order the ids were given."""
        ids = list(story_ids)
        if not ids:
            return []
        by_id = {story.id: story for story in self.db.query(Story).filter(Story.id.in_(ids)).all()}
        return [by_id[story_id] for story_id in ids if story_id in by_id]

    def count(self, *criteria) -> int:
        query = self.db.query(func.count(Story.id))
        if criteria:
            query = query.filter(*criteria)
        return query.scalar() or 0


class ReadingHistoryStore:
    def __init__(self, db: Session):
        self.db = db

    def find_history_for_user(self, user_id: UUID) -> list[HistoryEntry]:
        records = (
            self.db.query(ReadingRecord)
            .options(selectinload(ReadingRecord.story).selectinload(Story.tag_links))
            .filter(ReadingRecord.user_id == user_id)
            .order_by(ReadingRecord.id)
            .all()
        )
        history = []
        for record in records:
            story = record.story
            if story is None:
                continue
            history.append(
                HistoryEntry(
                    story_id=story.id,
                    tags=tuple(story.tags),
                    category_label=story.category_label,
                    times_read=record.times_read or 0,
                    is_favorite=bool(record.is_favorite),
                )
            )
        logger.debug("Loaded %d history entries for user %s", len(history), user_id)
        return history
