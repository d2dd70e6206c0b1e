from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID
from storybook.models import UserRole


class UserCreate(BaseModel):
    username: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str


class UserLogin(BaseModel):
    # Either the email address or the username
    email: str
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    role: UserRole
    avatar: Optional[str]
    points: int
    level: int
    created_at: datetime


class AuthResponse(UserResponse):
    token: str
    token_type: str = "bearer"
