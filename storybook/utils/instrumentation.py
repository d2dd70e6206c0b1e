"""
Product event log.

Events are rows in `event_logs` written inside the caller's transaction; the
caller decides when to commit. Writing an event must never fail a request, and
a failed write leaves the caller's session usable.
"""
import logging
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from storybook.models import EventLog

logger = logging.getLogger(__name__)

RECOMMENDATIONS_IMPRESSION = "recommendations_impression"


def log_event(
    db: Session,
    event_name: str,
    user_id: Optional[UUID] = None,
    properties: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> bool:
    """Add an event and flush it. Returns False (after logging a warning) if it could not be written."""
    try:
        # Savepoint: a failed insert must not poison the caller's transaction
        with db.begin_nested():
            db.add(
                EventLog(
                    event_name=event_name,
                    user_id=user_id,
                    properties=properties,
                    request_id=request_id,
                    session_id=session_id,
                )
            )
            db.flush()
    except Exception as e:
        logger.warning(
            "Failed to log event %s for user %s: %s",
            event_name,
            user_id,
            e,
            exc_info=True,
        )
        return False

    logger.debug("event %s user=%s request=%s", event_name, user_id, request_id)
    return True


def log_recommendation_impression(
    db: Session,
    user_id: UUID,
    request_id: str,
    story_ids: Iterable[UUID],
) -> bool:
    """Record which stories a reader was shown, in display order."""
    shown = [str(story_id) for story_id in story_ids]
    return log_event(
        db,
        RECOMMENDATIONS_IMPRESSION,
        user_id=user_id,
        properties={"count": len(shown), "story_ids": shown, "top_story_id": shown[0] if shown else None},
        request_id=request_id,
    )
