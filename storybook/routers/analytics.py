from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from storybook.core.auth import get_optional_user, require_admin
from storybook.database import get_db
from storybook.models import User
from storybook.schemas.analytics import PageVisitCreate, ShareCreate, TrackResponse
from storybook.services import analytics_service
from storybook.utils.timing import time_operation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])

# Rollups slower than this are logged at INFO
SLOW_ROLLUP_MS = 200.0


@router.post("/visits", response_model=TrackResponse, status_code=status.HTTP_201_CREATED)
def record_visit(
    payload: PageVisitCreate,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    analytics_service.record_visit(db, payload, user_id=user.id if user else None)
    return TrackResponse(success=True)


@router.post("/track-share", response_model=TrackResponse)
def track_share(
    payload: ShareCreate,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    analytics_service.track_share(db, payload.story_id, payload.platform, user_id=user.id if user else None)
    return TrackResponse(success=True)


@router.get("/stats")
def get_visitor_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    with time_operation("analytics.visitor_stats", logger.info, min_ms=SLOW_ROLLUP_MS):
        return analytics_service.visitor_stats(db, start_date, end_date)


@router.get("/traffic-sources")
def get_traffic_sources(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    with time_operation("analytics.traffic_sources", logger.info, min_ms=SLOW_ROLLUP_MS):
        return analytics_service.traffic_sources(db, start_date, end_date)


@router.get("/top-stories")
def get_top_stories(
    limit: int = Query(10, ge=1, le=100),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    with time_operation("analytics.top_stories", logger.info, min_ms=SLOW_ROLLUP_MS):
        return analytics_service.top_stories(db, limit=limit, start=start_date, end=end_date)


@router.get("/social-media")
def get_social_media_stats(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    with time_operation("analytics.social_media", logger.info, min_ms=SLOW_ROLLUP_MS):
        return analytics_service.social_media_stats(db, start_date, end_date)
