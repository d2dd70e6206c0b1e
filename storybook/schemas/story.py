from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional, Union
from datetime import datetime
from uuid import UUID


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _force_https(url: Optional[str]) -> Optional[str]:
    if url and url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


class StoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: dict[str, str]
    description: dict[str, str]
    available_languages: list[str]
    cover_image: str
    pdf_url: Optional[str]
    age_group: str
    category_label: Optional[str]
    tags: list[str]
    categories: list[str]
    pages: list[Any]
    views: int
    downloads: int
    quiz_data: list[Any]
    created_at: datetime
    updated_at: datetime

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text_maps(cls, value):
        return _as_dict(value)

    @field_validator("available_languages", "categories", "pages", "quiz_data", "tags", mode="before")
    @classmethod
    def _lists(cls, value):
        return _as_list(value)

    @field_validator("cover_image", "pdf_url", mode="after")
    @classmethod
    def _https(cls, value):
        return _force_https(value)


class StorySummary(BaseModel):
    """Compact story shape used inside favorites, reviews and analytics payloads."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: dict[str, str]
    cover_image: str
    age_group: str
    category_label: Optional[str]

    @field_validator("title", mode="before")
    @classmethod
    def _text_map(cls, value):
        return _as_dict(value)

    @field_validator("cover_image", mode="after")
    @classmethod
    def _https(cls, value):
        return _force_https(value)


class StoryCreate(BaseModel):
    title: dict[str, str]
    description: dict[str, str] = {}
    available_languages: list[str] = []
    cover_image: str
    pdf_url: Optional[str] = None
    age_group: str = "3-5"
    category_label: Optional[str] = "English"
    # Accepts a list, a JSON array string or a comma-separated string
    tags: Union[list[Any], str, None] = None
    categories: list[str] = []
    pages: list[Any] = []
    quiz_data: list[Any] = []


class StoryUpdate(BaseModel):
    title: Optional[dict[str, str]] = None
    description: Optional[dict[str, str]] = None
    available_languages: Optional[list[str]] = None
    cover_image: Optional[str] = None
    pdf_url: Optional[str] = None
    age_group: Optional[str] = None
    category_label: Optional[str] = None
    tags: Union[list[Any], str, None] = None
    categories: Optional[list[str]] = None
    pages: Optional[list[Any]] = None
    quiz_data: Optional[list[Any]] = None
    views: Optional[int] = Field(None, ge=0)
    downloads: Optional[int] = Field(None, ge=0)

    # Omitting these leaves them unchanged; an explicit null is rejected
    @field_validator(
        "title", "description", "available_languages", "cover_image", "age_group", "categories", "pages",
        mode="after",
    )
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    count: int
