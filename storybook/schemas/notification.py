from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: dict[str, str]
    message: dict[str, str]
    type: str
    is_read: bool
    target_id: Optional[str]
    target_type: Optional[str]
    action_url: Optional[str]
    created_at: datetime


class MessageResponse(BaseModel):
    message: str
