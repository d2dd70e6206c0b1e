from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID
import logging

from storybook.core.auth import get_optional_user, require_admin
from storybook.database import get_db
from storybook.models import Review, ReviewType, Story, User
from storybook.schemas.notification import MessageResponse
from storybook.schemas.review import (
    ReviewActionResponse,
    ReviewCreate,
    ReviewCreateResponse,
    ReviewResponse,
    StoryReviewsResponse,
)
from storybook.utils.numbers import round_half_up

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])

FEATURED_PLATFORM_LIMIT = 15


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found",
        )
    return review


@router.post("", response_model=ReviewCreateResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    payload: ReviewCreate,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """
    Submit a story or platform review, signed in or as a guest.

    Reviews are hidden until an admin approves them.
    """
    if payload.rating is None or not 1 <= payload.rating <= 5:
        raise _bad_request("Rating must be between 1 and 5")

    if payload.type == ReviewType.STORY:
        if payload.story_id is None:
            raise _bad_request("Story ID is required for story reviews")
        if not db.get(Story, payload.story_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Story not found",
            )

    if user is None and not (payload.guest_name and payload.guest_avatar):
        raise _bad_request("Guest name and avatar are required")

    if user is not None and payload.type == ReviewType.STORY:
        existing = (
            db.query(Review)
            .filter(
                Review.user_id == user.id,
                Review.story_id == payload.story_id,
                Review.type == ReviewType.STORY,
            )
            .first()
        )
        if existing:
            raise _bad_request("You have already reviewed this story")

    review = Review(
        user_id=user.id if user else None,
        story_id=payload.story_id if payload.type == ReviewType.STORY else None,
        type=payload.type,
        rating=payload.rating,
        comment=payload.comment,
        guest_name=None if user else payload.guest_name,
        guest_avatar=None if user else payload.guest_avatar,
        user_name=user.username if user else payload.guest_name,
        is_approved=False,
        is_featured=False,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info("New %s review %s (user=%s)", review.type.value, review.id, review.user_id)

    return ReviewCreateResponse(
        message="Review submitted and awaiting approval",
        review=ReviewResponse.model_validate(review),
    )


@router.get("/story/{story_id}", response_model=StoryReviewsResponse)
def get_story_reviews(story_id: UUID, db: Session = Depends(get_db)):
    approved = (Review.story_id == story_id, Review.type == ReviewType.STORY, Review.is_approved.is_(True))

    reviews = (
        db.query(Review)
        .filter(*approved)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    average = db.query(func.avg(Review.rating)).filter(*approved).scalar()

    return StoryReviewsResponse(
        reviews=[ReviewResponse.model_validate(review) for review in reviews],
        total_reviews=len(reviews),
        average_rating=round_half_up(float(average)) if average is not None else 0,
    )


@router.get("/platform/featured", response_model=list[ReviewResponse])
def get_featured_platform_reviews(db: Session = Depends(get_db)):
    return (
        db.query(Review)
        .filter(
            Review.type == ReviewType.PLATFORM,
            Review.is_approved.is_(True),
            Review.is_featured.is_(True),
        )
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(FEATURED_PLATFORM_LIMIT)
        .all()
    )


@router.get("/all", response_model=list[ReviewResponse])
def get_all_reviews(
    approved: Optional[bool] = Query(None, description="Filter by approval state"),
    review_type: Optional[ReviewType] = Query(None, alias="type", description="story or platform"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Review)
    if approved is not None:
        query = query.filter(Review.is_approved.is_(approved))
    if review_type is not None:
        query = query.filter(Review.type == review_type)
    return query.order_by(Review.created_at.desc(), Review.id.desc()).all()


@router.patch("/{review_id}/approve", response_model=ReviewActionResponse)
def approve_review(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    review.is_approved = True
    db.commit()
    db.refresh(review)
    return ReviewActionResponse(message="Review approved", review=ReviewResponse.model_validate(review))


@router.patch("/{review_id}/reject", response_model=ReviewActionResponse)
def reject_review(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    review.is_approved = False
    # A hidden review can't stay on the landing page
    review.is_featured = False
    db.commit()
    db.refresh(review)
    return ReviewActionResponse(message="Review rejected", review=ReviewResponse.model_validate(review))


@router.patch("/{review_id}/feature", response_model=ReviewActionResponse)
def toggle_featured(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    review.is_featured = not review.is_featured
    db.commit()
    db.refresh(review)
    message = "Review featured" if review.is_featured else "Review unfeatured"
    return ReviewActionResponse(message=message, review=ReviewResponse.model_validate(review))


@router.delete("/{review_id}", response_model=MessageResponse)
def delete_review(
    review_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = _get_review_or_404(db, review_id)
    db.delete(review)
    db.commit()
    logger.info("Admin %s deleted review %s", admin.id, review_id)
    return MessageResponse(message="Review deleted successfully")
