"""
Visitor analytics: page-visit collection and the grouped rollups behind the
admin dashboard.

All rollups accept an optional [start, end] window that only applies when both
bounds are given.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import distinct, extract, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storybook.models import PageVisit, SocialShare
from storybook.schemas.analytics import PageVisitCreate
from storybook.schemas.story import StorySummary
from storybook.services.story_store import StoryStore
from storybook.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

UTM_PLATFORMS = {
    "facebook": "facebook",
    "fb": "facebook",
    "twitter": "twitter",
    "x": "twitter",
    "whatsapp": "whatsapp",
    "wa": "whatsapp",
    "telegram": "telegram",
    "linkedin": "linkedin",
}


def platform_for_utm_source(utm_source: str) -> str:
    return UTM_PLATFORMS.get(utm_source.strip().lower(), "other")


def _window(column, start: Optional[datetime], end: Optional[datetime]) -> list:
    if start and end:
        return [column.between(start, end)]
    return []


def _bump_share(
    db: Session,
    story_id: UUID,
    platform: str,
    clicks: int = 0,
    conversions: int = 0,
    user_id: Optional[UUID] = None,
) -> SocialShare:
    """Find-or-create the (story, platform) share row and add to its counters. Commits."""
    share = (
        db.query(SocialShare)
        .filter(SocialShare.story_id == story_id, SocialShare.platform == platform)
        .first()
    )
    if share is None:
        share = SocialShare(story_id=story_id, platform=platform, user_id=user_id, clicks=0, conversions=0)
        db.add(share)
        try:
            db.flush()
        except IntegrityError:
            # Another request created the row between our check and insert
            db.rollback()
            share = (
                db.query(SocialShare)
                .filter(SocialShare.story_id == story_id, SocialShare.platform == platform)
                .one()
            )

    share.clicks = (share.clicks or 0) + clicks
    share.conversions = (share.conversions or 0) + conversions
    db.commit()
    return share


def record_visit(db: Session, payload: PageVisitCreate, user_id: Optional[UUID] = None) -> PageVisit:
    """
    Store a page visit. A visit arriving from a UTM-tagged link to a story also
    counts as a conversion for the matching social platform.
    """
    visit = PageVisit(
        user_id=user_id,
        session_id=payload.session_id,
        url=payload.url,
        referrer=payload.referrer,
        utm_source=payload.utm_source,
        utm_medium=payload.utm_medium,
        utm_campaign=payload.utm_campaign,
        utm_content=payload.utm_content,
        story_id=payload.story_id,
        duration=payload.duration,
    )
    db.add(visit)
    db.commit()

    if payload.utm_source and payload.story_id:
        platform = platform_for_utm_source(payload.utm_source)
        _bump_share(db, payload.story_id, platform, conversions=1)
        logger.debug("Share conversion: story=%s platform=%s", payload.story_id, platform)

    return visit


def track_share(db: Session, story_id: UUID, platform: str, user_id: Optional[UUID] = None) -> SocialShare:
    return _bump_share(db, story_id, platform.strip().lower(), clicks=1, user_id=user_id)


def visitor_stats(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    window = _window(PageVisit.created_at, start, end)

    unique_visitors = (
        db.query(func.count(distinct(PageVisit.session_id))).filter(*window).scalar() or 0
    )
    total_page_views = db.query(func.count(PageVisit.id)).filter(*window).scalar() or 0
    registered_visitors = (
        db.query(func.count(distinct(PageVisit.user_id)))
        .filter(*window, PageVisit.user_id.isnot(None))
        .scalar()
        or 0
    )

    hour = extract("hour", PageVisit.created_at)
    hourly = (
        db.query(hour.label("hour"), func.count(PageVisit.id).label("visits"))
        .filter(*window)
        .group_by(hour)
        .order_by(hour)
        .all()
    )

    day = func.date(PageVisit.created_at)
    daily = (
        db.query(
            day.label("date"),
            func.count(distinct(PageVisit.session_id)).label("visitors"),
            func.count(PageVisit.id).label("page_views"),
        )
        .filter(*window)
        .group_by(day)
        .order_by(day)
        .all()
    )

    return {
        "summary": {
            "unique_visitors": unique_visitors,
            "total_page_views": total_page_views,
            "registered_visitors": registered_visitors,
            "avg_pages_per_session": round_half_up(total_page_views / (unique_visitors or 1)),
        },
        "hourly_stats": [{"hour": int(row.hour), "visits": row.visits} for row in hourly],
        "daily_growth": [
            {"date": str(row.date), "visitors": row.visitors, "page_views": row.page_views}
            for row in daily
        ],
    }


def traffic_sources(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    window = _window(PageVisit.created_at, start, end)
    visitors = func.count(distinct(PageVisit.session_id))

    utm_rows = (
        db.query(
            PageVisit.utm_source,
            PageVisit.utm_medium,
            PageVisit.utm_campaign,
            visitors.label("visitors"),
            func.count(PageVisit.id).label("page_views"),
        )
        .filter(*window, PageVisit.utm_source.isnot(None))
        .group_by(PageVisit.utm_source, PageVisit.utm_medium, PageVisit.utm_campaign)
        .order_by(visitors.desc())
        .all()
    )

    direct_traffic = (
        db.query(visitors)
        .filter(*window, PageVisit.utm_source.is_(None), PageVisit.referrer.is_(None))
        .scalar()
        or 0
    )

    referral_rows = (
        db.query(PageVisit.referrer, visitors.label("visitors"))
        .filter(*window, PageVisit.utm_source.is_(None), PageVisit.referrer.isnot(None))
        .group_by(PageVisit.referrer)
        .order_by(visitors.desc())
        .limit(10)
        .all()
    )

    return {
        "utm_sources": [
            {
                "utm_source": row.utm_source,
                "utm_medium": row.utm_medium,
                "utm_campaign": row.utm_campaign,
                "visitors": row.visitors,
                "page_views": row.page_views,
            }
            for row in utm_rows
        ],
        "direct_traffic": direct_traffic,
        "referrals": [{"referrer": row.referrer, "visitors": row.visitors} for row in referral_rows],
    }


def _story_summaries(db: Session, story_ids: List[UUID]) -> Dict[UUID, Dict[str, Any]]:
    stories = StoryStore(db).find_many(story_ids)
    return {story.id: StorySummary.model_validate(story).model_dump(mode="json") for story in stories}


def top_stories(
    db: Session,
    limit: int = 10,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    window = _window(PageVisit.created_at, start, end)
    unique_views = func.count(distinct(PageVisit.session_id))
    total_views = func.count(PageVisit.id)

    rows = (
        db.query(PageVisit.story_id, unique_views.label("unique_views"), total_views.label("total_views"))
        .filter(*window, PageVisit.story_id.isnot(None))
        .group_by(PageVisit.story_id)
        .order_by(unique_views.desc(), total_views.desc())
        .limit(limit)
        .all()
    )

    stories = _story_summaries(db, [row.story_id for row in rows])
    return [
        {
            "story_id": str(row.story_id),
            "unique_views": row.unique_views,
            "total_views": row.total_views,
            "story": stories.get(row.story_id),
        }
        for row in rows
    ]


def social_media_stats(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, Any]:
    window = _window(SocialShare.created_at, start, end)
    total_clicks = func.coalesce(func.sum(SocialShare.clicks), 0)
    total_conversions = func.coalesce(func.sum(SocialShare.conversions), 0)

    platform_rows = (
        db.query(
            SocialShare.platform,
            total_clicks.label("total_clicks"),
            total_conversions.label("total_conversions"),
            func.count(distinct(SocialShare.story_id)).label("stories_shared"),
        )
        .filter(*window)
        .group_by(SocialShare.platform)
        .order_by(SocialShare.platform)
        .all()
    )

    story_rows = (
        db.query(
            SocialShare.story_id,
            total_clicks.label("total_clicks"),
            total_conversions.label("total_conversions"),
        )
        .filter(*window)
        .group_by(SocialShare.story_id)
        .order_by(total_conversions.desc(), total_clicks.desc())
        .limit(10)
        .all()
    )

    stories = _story_summaries(db, [row.story_id for row in story_rows])
    return {
        "platforms": [
            {
                "platform": row.platform,
                "total_clicks": int(row.total_clicks),
                "total_conversions": int(row.total_conversions),
                "stories_shared": row.stories_shared,
            }
            for row in platform_rows
        ],
        "top_shared_stories": [
            {
                "story_id": str(row.story_id),
                "total_clicks": int(row.total_clicks),
                "total_conversions": int(row.total_conversions),
                "story": stories.get(row.story_id),
            }
            for row in story_rows
        ],
    }
