"""
In-app notifications: creation helpers for the events the platform announces
(welcome, new stories, achievements) and housekeeping of stale entries.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from storybook.core.config import settings
from storybook.models import Notification, NotificationType, Story, User

logger = logging.getLogger(__name__)


def _story_title(story: Story, lang: str) -> str:
    title = story.title if isinstance(story.title, dict) else {}
    # Arabic title is the universal fallback, then English
    return title.get(lang) or title.get("ar") or title.get("en") or "قصة جديدة"


def create_notification(
    db: Session,
    user_id: UUID,
    title: Dict[str, str],
    message: Dict[str, str],
    notification_type: NotificationType = NotificationType.INFO,
    target_id: Optional[str] = None,
    target_type: Optional[str] = None,
    action_url: Optional[str] = None,
) -> bool:
    """
    Add a notification for a user.

    Never breaks the calling request: failures are logged and reported as False.
    The row is written inside a savepoint, so a failed insert rolls back only
    itself and the caller's transaction stays usable. Does NOT commit.
    """
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType(notification_type).value,
            target_id=target_id,
            target_type=target_type,
            action_url=action_url,
        )
        with db.begin_nested():
            db.add(notification)
            db.flush()
        return True
    except Exception as e:
        logger.warning(
            "Failed to create notification: user_id=%s, type=%s, error=%s",
            user_id,
            notification_type,
            str(e),
            exc_info=True,
        )
        return False


def notify_welcome(db: Session, user: User) -> bool:
    return create_notification(
        db,
        user.id,
        title={
            "ar": "أهلاً بك في عالم الحكايات! ✨",
            "en": "Welcome to the world of stories! ✨",
            "fr": "Bienvenue dans le monde des histoires ! ✨",
        },
        message={
            "ar": "نحن متحمسون لانضمامك إلينا. ابدأ رحلة القراءة السحرية الآن!",
            "en": "We are excited to have you on board. Start your magical reading journey now!",
            "fr": "Nous sommes ravis de vous accueillir. Commencez votre voyage de lecture magique dès maintenant !",
        },
        notification_type=NotificationType.SYSTEM,
    )


def notify_new_story(db: Session, story: Story) -> int:
    """Announce a freshly published story to every user. Returns how many were created."""
    user_ids = [row[0] for row in db.query(User.id).all()]
    title = {
        "ar": "مفاجأة سحرية في انتظارك!",
        "en": "A Magical Surprise Awaits!",
        "fr": "Une surprise magique vous attend !",
    }
    message = {
        "ar": f'حكاية جديدة بعنوان "{_story_title(story, "ar")}" انضمت لعالمنا. استعد لرحلة خيالية لا تنسى!',
        "en": f'The tale "{_story_title(story, "en")}" has just landed in our world. Get ready for an unforgettable journey!',
        "fr": f'L\'histoire "{_story_title(story, "fr")}" vient d\'arriver. Préparez-vous pour un voyage inoubliable !',
    }

    created = 0
    for user_id in user_ids:
        if create_notification(
            db,
            user_id,
            title=title,
            message=message,
            notification_type=NotificationType.STORY,
            target_id=str(story.id),
            target_type="story",
        ):
            created += 1

    logger.info("Announced story %s to %d users", story.id, created)
    return created


def notify_story_completed(db: Session, user_id: UUID, story: Story, points: int) -> bool:
    return create_notification(
        db,
        user_id,
        title={"ar": "تهانينا! 🎉", "en": "Congratulations! 🎉", "fr": "Félicitations ! 🎉"},
        message={
            "ar": f'لقد أتممت قراءة قصة "{_story_title(story, "ar")}". استمر في هذا العمل الرائع! (+{points} نقطة)',
            "en": f'You have completed reading "{_story_title(story, "en")}". Keep up the great work! (+{points} points)',
            "fr": f'Vous avez terminé la lecture de "{_story_title(story, "fr")}". Continuez comme ça ! (+{points} points)',
        },
        notification_type=NotificationType.ACHIEVEMENT,
        target_id=str(story.id),
        target_type="story",
    )


def notify_perfect_quiz(db: Session, user_id: UUID, story: Story) -> bool:
    return create_notification(
        db,
        user_id,
        title={"ar": "أحسنت! 🌟", "en": "Well Done! 🌟", "fr": "Bien joué ! 🌟"},
        message={
            "ar": "لقد حققت العلامة الكاملة في اختبار القصة!",
            "en": "You achieved a perfect score in the story quiz!",
            "fr": "Vous avez obtenu un score parfait au quiz de l'histoire !",
        },
        notification_type=NotificationType.ACHIEVEMENT,
        target_id=str(story.id),
        target_type="story",
    )


def purge_stale_story_notifications(db: Session, user_id: Optional[UUID] = None) -> int:
    """
    Delete unread "new story" notifications older than the configured TTL.

    Scoped to one user when user_id is given, otherwise applied to everyone.
    Does not commit.
    """
    cutoff = datetime.utcnow() - timedelta(days=settings.STORY_NOTIFICATION_TTL_DAYS)
    query = db.query(Notification).filter(
        Notification.type == NotificationType.STORY.value,
        Notification.is_read.is_(False),
        Notification.created_at < cutoff,
    )
    if user_id is not None:
        query = query.filter(Notification.user_id == user_id)

    deleted = query.delete(synchronize_session=False)
    if deleted:
        logger.info("Purged %d stale story notifications (user=%s)", deleted, user_id)
    return deleted


def list_notifications(db: Session, user_id: UUID) -> List[Notification]:
    purge_stale_story_notifications(db, user_id)
    db.commit()
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(settings.NOTIFICATION_PAGE_SIZE)
        .all()
    )


def get_user_notification(db: Session, user_id: UUID, notification_id: int) -> Optional[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )


def mark_all_read(db: Session, user_id: UUID) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated
