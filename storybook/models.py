from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    JSON,
    Table,
    Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
import sqlalchemy as sa
from storybook.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class ReviewType(str, enum.Enum):
    STORY = "story"
    PLATFORM = "platform"


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    STORY = "story"
    ACHIEVEMENT = "achievement"
    SYSTEM = "system"


story_tags = Table(
    "story_tags",
    Base.metadata,
    Column("story_id", Uuid, ForeignKey("stories.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(
        SQLEnum(
            UserRole,
            name="userrole",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=UserRole.USER,
    )
    avatar = Column(String, nullable=True)
    points = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    reading_records = relationship(
        "ReadingRecord", back_populates="user", cascade="all, delete-orphan"
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )
    reviews = relationship("Review", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Category(Base):
    __tablename__ = "categories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(JSON, nullable=False, default=dict)  # {"en": "Animals", "ar": "..."}
    description = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class Story(Base):
    __tablename__ = "stories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(JSON, nullable=False, default=dict)
    description = Column(JSON, nullable=False, default=dict)
    available_languages = Column(JSON, nullable=False, default=list)
    cover_image = Column(String, nullable=False)
    pdf_url = Column(String, nullable=True)
    age_group = Column(String, nullable=False, default="3-5")
    category_label = Column(String, nullable=True, index=True)
    categories = Column(JSON, nullable=False, default=list)  # category ids
    pages = Column(JSON, nullable=False, default=list)
    views = Column(Integer, nullable=False, default=0, index=True)
    downloads = Column(Integer, nullable=False, default=0)
    quiz_data = Column(JSON, nullable=True, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tag_links = relationship("Tag", secondary=story_tags, lazy="selectin", order_by="Tag.id")
    reading_records = relationship(
        "ReadingRecord", back_populates="story", cascade="all, delete-orphan"
    )
    reviews = relationship("Review", back_populates="story", cascade="all, delete-orphan")

    @property
    def tags(self) -> list[str]:
        return [tag.name for tag in self.tag_links]


class ReadingRecord(Base):
    """
    One user's interaction history with one story (reads, progress, favorite flag).
    Created on the first read or favorite, removed with either the user or the story.
    """
    __tablename__ = "user_stories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    story_id = Column(Uuid, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    is_favorite = Column(Boolean, nullable=False, default=False)
    last_read = Column(DateTime, nullable=True)
    times_read = Column(Integer, nullable=False, default=0)
    last_page_reached = Column(Integer, nullable=False, default=0)
    total_reading_time = Column(Integer, nullable=False, default=0)  # seconds
    is_completed = Column(Boolean, nullable=False, default=False)
    quiz_score = Column(Integer, nullable=True)
    quiz_total = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="reading_records")
    story = relationship("Story", back_populates="reading_records")

    __table_args__ = (
        UniqueConstraint("user_id", "story_id", name="uq_user_stories_user_story"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    story_id = Column(Uuid, ForeignKey("stories.id", ondelete="CASCADE"), nullable=True)
    type = Column(
        SQLEnum(
            ReviewType,
            name="reviewtype",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=ReviewType.STORY,
    )
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    is_featured = Column(Boolean, nullable=False, default=False)
    guest_name = Column(String, nullable=True)
    guest_avatar = Column(String, nullable=True)
    user_name = Column(String, nullable=True)  # cached display name
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="reviews")
    story = relationship("Story", back_populates="reviews")

    __table_args__ = (
        sa.Index("idx_reviews_story_approved", "story_id", "is_approved"),
        sa.Index("idx_reviews_type_featured_approved", "type", "is_featured", "is_approved"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(JSON, nullable=False, default=dict)  # {"ar": ..., "en": ..., "fr": ...}
    message = Column(JSON, nullable=False, default=dict)
    type = Column(String, nullable=False, default=NotificationType.INFO.value)
    is_read = Column(Boolean, nullable=False, default=False)
    target_id = Column(String, nullable=True)
    target_type = Column(String, nullable=True)  # story | review | system
    action_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="notifications")


class PageVisit(Base):
    __tablename__ = "page_visits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Uuid, nullable=True, index=True)
    session_id = Column(String, nullable=False, index=True)
    url = Column(String(500), nullable=False)
    referrer = Column(String(500), nullable=True)
    utm_source = Column(String, nullable=True, index=True)
    utm_medium = Column(String, nullable=True)
    utm_campaign = Column(String, nullable=True)
    utm_content = Column(String, nullable=True)
    story_id = Column(Uuid, nullable=True, index=True)
    duration = Column(Integer, nullable=True)  # seconds on page
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class SocialShare(Base):
    __tablename__ = "social_shares"

    id = Column(Integer, primary_key=True, autoincrement=True)
    story_id = Column(Uuid, nullable=False, index=True)
    platform = Column(String, nullable=False)
    user_id = Column(Uuid, nullable=True)
    clicks = Column(Integer, nullable=False, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("story_id", "platform", name="uq_social_shares_story_platform"),
    )


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    user_id = Column(Uuid, nullable=True, index=True)
    event_name = Column(String, nullable=False, index=True)
    properties = Column(JSON, nullable=True)
    request_id = Column(String, nullable=True)
    session_id = Column(String, nullable=True)
