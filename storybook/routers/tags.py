from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storybook.database import get_db
from storybook.schemas.story import TagResponse
from storybook.services.tag_service import list_tags

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=list[TagResponse])
def get_tags(db: Session = Depends(get_db)):
    """Tag registry, most used first."""
    return list_tags(db)
