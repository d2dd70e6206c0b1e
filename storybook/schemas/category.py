from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Optional
from datetime import datetime
from uuid import UUID


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: dict[str, str]
    description: dict[str, str]
    created_at: datetime
    updated_at: datetime

    @field_validator("name", "description", mode="before")
    @classmethod
    def _text_maps(cls, value):
        return value if isinstance(value, dict) else {}


class CategoryCreate(BaseModel):
    # Plain strings are expanded into {"en": value, "ar": value}
    name: Any = None
    description: Any = None


class CategoryUpdate(BaseModel):
    name: Optional[Any] = None
    description: Optional[Any] = None
