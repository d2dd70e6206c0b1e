from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging
import random
import uuid as uuid_lib

from storybook.core.auth import get_current_user, require_admin
from storybook.core.config import settings
from storybook.database import get_db
from storybook.models import Story, Tag, User
from storybook.schemas.story import StoryCreate, StoryResponse, StoryUpdate
from storybook.services import recommendation_engine
from storybook.services.notification_service import notify_new_story
from storybook.services.recommendation_engine import StoryNotFoundError
from storybook.services.story_store import ReadingHistoryStore, StoryStore
from storybook.services.tag_service import release_story_tags, slugify, sync_story_tags
from storybook.utils.instrumentation import log_recommendation_impression
from storybook.utils.timing import log_elapsed, now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stories", tags=["stories"])


def get_rng() -> random.Random:
    """Random source for similarity sampling; overridden with a seeded one in tests."""
    return random.Random()


def _get_story_or_404(db: Session, story_id: UUID) -> Story:
    story = db.get(Story, story_id)
    if not story:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found",
        )
    return story


@router.get("", response_model=list[StoryResponse])
def list_stories(
    category: Optional[str] = Query(None, description="Filter by category label or category id"),
    tag: Optional[str] = Query(None, description="Filter by tag name or slug"),
    q: Optional[str] = Query(None, description="Search in the story title"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Newest stories first, with optional filters."""
    query = db.query(Story)

    if category:
        query = query.filter(
            or_(
                Story.category_label == category,
                cast(Story.categories, String).contains(f'"{category}"'),
            )
        )

    if tag:
        query = query.filter(Story.tag_links.any(or_(Tag.name == tag, Tag.slug == slugify(tag))))

    if q and q.strip():
        query = query.filter(cast(Story.title, String).ilike(f"%{q.strip()}%"))

    return query.order_by(Story.created_at.desc(), Story.id).offset(offset).limit(limit).all()


@router.get("/recommendations", response_model=list[StoryResponse])
def get_recommendations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Personalized feed for the signed-in reader.

    Readers without history get the most viewed stories; everyone else gets
    unread stories matching their favourite tags and category.
    """
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())

    stories = recommendation_engine.get_recommendations(
        story_store=StoryStore(db),
        history_store=ReadingHistoryStore(db),
        user_id=user.id,
    )

    if settings.DEBUG:
        t1 = log_elapsed(t0, f"req_id={request_id} user={user.id} recommendations_engine", logger.debug)
    else:
        t1 = now_ms()

    log_recommendation_impression(db, user.id, request_id, [story.id for story in stories])
    db.commit()

    if settings.DEBUG:
        log_elapsed(t1, f"req_id={request_id} user={user.id} event_log_commit", logger.debug)
        logger.debug(f"req_id={request_id} user={user.id} total={now_ms() - t0:.2f}ms count={len(stories)}")

    return stories


@router.get("/{story_id}", response_model=StoryResponse)
def get_story(story_id: UUID, db: Session = Depends(get_db)):
    return _get_story_or_404(db, story_id)


@router.get("/{story_id}/similar", response_model=list[StoryResponse])
def get_similar_stories(
    story_id: UUID,
    rng: random.Random = Depends(get_rng),
    db: Session = Depends(get_db),
):
    """Up to four random stories sharing the category or a tag with this one."""
    try:
        return recommendation_engine.get_similar_stories(StoryStore(db), story_id, rng=rng)
    except StoryNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found",
        )


@router.post("", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
def create_story(
    payload: StoryCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Publish a story and announce it to every reader."""
    data = payload.model_dump(exclude={"tags"})
    story = Story(**data, views=0, downloads=0)
    db.add(story)
    db.flush()

    sync_story_tags(db, story, payload.tags)
    notify_new_story(db, story)

    db.commit()
    db.refresh(story)
    logger.info("Admin %s created story %s", admin.id, story.id)
    return story


@router.put("/{story_id}", response_model=StoryResponse)
def update_story(
    story_id: UUID,
    payload: StoryUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    story = _get_story_or_404(db, story_id)

    updates = payload.model_dump(exclude_unset=True)
    raw_tags = updates.pop("tags", None)
    tags_sent = "tags" in payload.model_fields_set

    for field_name, value in updates.items():
        # Counters are only overwritten when a value is actually sent
        if field_name in ("views", "downloads") and value is None:
            continue
        setattr(story, field_name, value)

    if tags_sent:
        sync_story_tags(db, story, raw_tags)

    db.commit()
    db.refresh(story)
    logger.info("Admin %s updated story %s (fields=%s)", admin.id, story.id, sorted(payload.model_fields_set))
    return story


@router.delete("/{story_id}")
def delete_story(
    story_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    story = _get_story_or_404(db, story_id)
    release_story_tags(story)
    db.delete(story)
    db.commit()
    logger.info("Admin %s deleted story %s", admin.id, story_id)
    return {"id": str(story_id)}


@router.patch("/{story_id}/view", response_model=StoryResponse)
def increment_views(story_id: UUID, db: Session = Depends(get_db)):
    story = _get_story_or_404(db, story_id)
    story.views = (story.views or 0) + 1
    db.commit()
    db.refresh(story)
    return story


@router.patch("/{story_id}/download", response_model=StoryResponse)
def increment_downloads(story_id: UUID, db: Session = Depends(get_db)):
    story = _get_story_or_404(db, story_id)
    story.downloads = (story.downloads or 0) + 1
    db.commit()
    db.refresh(story)
    return story
