from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Any
from uuid import UUID
import logging

from storybook.core.auth import require_admin
from storybook.database import get_db
from storybook.models import Category, User
from storybook.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from storybook.schemas.notification import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


def normalize_text_map(value: Any) -> dict:
    """A plain string is used for both English and Arabic; anything else that isn't a dict is dropped."""
    if isinstance(value, dict):
        return {str(lang): str(text) for lang, text in value.items() if text is not None}
    if isinstance(value, str) and value.strip():
        return {"en": value, "ar": value}
    return {}


def _get_category_or_404(db: Session, category_id: UUID) -> Category:
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found",
        )
    return category


@router.get("", response_model=list[CategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    return db.query(Category).order_by(Category.created_at, Category.id).all()


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = Category(
        name=normalize_text_map(payload.name),
        description=normalize_text_map(payload.description),
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Admin %s created category %s", admin.id, category.id)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: UUID,
    payload: CategoryUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = _get_category_or_404(db, category_id)

    if "name" in payload.model_fields_set:
        category.name = normalize_text_map(payload.name)
    if "description" in payload.model_fields_set:
        category.description = normalize_text_map(payload.description)

    db.commit()
    db.refresh(category)
    return category


@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    category = _get_category_or_404(db, category_id)
    db.delete(category)
    db.commit()
    logger.info("Admin %s deleted category %s", admin.id, category_id)
    return MessageResponse(message="Category deleted successfully")
