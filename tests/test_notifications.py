"""Tests for in-app notifications and their housekeeping."""
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from storybook.models import Notification, NotificationType
from storybook.scheduler import CLEANUP_JOB_ID, purge_stale_notifications_job, start_scheduler, stop_scheduler
from storybook.services.notification_service import create_notification, purge_stale_story_notifications


def _notify(db: Session, user, notification_type=NotificationType.INFO, age_days: int = 0, is_read: bool = False) -> Notification:
    notification = Notification(
        user_id=user.id,
        title={"en": "Hello"},
        message={"en": "World"},
        type=notification_type.value,
        is_read=is_read,
        created_at=datetime.utcnow() - timedelta(days=age_days),
    )
    db.add(notification)
    db.commit()
    return notification


def test_create_notification_flushes_into_caller_transaction(db: Session, user):
    assert create_notification(db, user.id, {"en": "Hi"}, {"en": "There"}, NotificationType.SUCCESS) is True
    db.commit()

    stored = db.query(Notification).one()
    assert stored.type == "success"
    assert stored.is_read is False


def test_create_notification_reports_failure_instead_of_raising(db: Session, user):
    assert create_notification(db, user.id, {"en": "Hi"}, {"en": "There"}, "not-a-type") is False


def test_failed_notification_insert_leaves_session_usable(db: Session, user):
    kept = _notify(db, user)
    kept_id = kept.id

    # NOT NULL violation on user_id fails at flush time
    assert create_notification(db, None, {"en": "Hi"}, {"en": "There"}) is False

    assert create_notification(db, user.id, {"en": "Again"}, {"en": "There"}) is True
    db.commit()

    assert db.get(Notification, kept_id) is not None
    assert [n.title for n in db.query(Notification).order_by(Notification.id)] == [{"en": "Hello"}, {"en": "Again"}]


def test_purge_only_removes_stale_unread_story_notifications(db: Session, user, make_user):
    other = make_user()
    stale = _notify(db, user, NotificationType.STORY, age_days=6)
    _notify(db, user, NotificationType.STORY, age_days=6, is_read=True)
    _notify(db, user, NotificationType.STORY, age_days=1)
    _notify(db, user, NotificationType.INFO, age_days=30)
    _notify(db, other, NotificationType.STORY, age_days=6)
    stale_id = stale.id

    assert purge_stale_story_notifications(db, user.id) == 1
    db.commit()

    assert db.get(Notification, stale_id) is None
    assert db.query(Notification).count() == 4


def test_scheduled_job_purges_for_everyone(db: Session, user, make_user, monkeypatch):
    _notify(db, user, NotificationType.STORY, age_days=6)
    _notify(db, make_user(), NotificationType.STORY, age_days=6)
    _notify(db, user, NotificationType.INFO)

    monkeypatch.setattr("storybook.scheduler.SessionLocal", lambda: db)
    assert purge_stale_notifications_job() == 2

    assert db.query(Notification).count() == 1


def test_list_notifications_purges_then_returns_newest_twenty(client, db: Session, user, user_headers):
    _notify(db, user, NotificationType.STORY, age_days=10)
    for age in range(25):
        _notify(db, user, NotificationType.INFO, age_days=age)

    response = client.get("/api/notifications", headers=user_headers)

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 20
    assert all(item["type"] == "info" for item in body)
    assert body[0]["created_at"] > body[-1]["created_at"]
    assert db.query(Notification).filter(Notification.type == "story").count() == 0


def test_mark_read_and_delete(client, db: Session, user, user_headers, make_user):
    mine = _notify(db, user)
    theirs = _notify(db, make_user())
    mine_id, theirs_id = mine.id, theirs.id

    assert client.patch(f"/api/notifications/{mine_id}/read", headers=user_headers).json()["is_read"] is True
    assert client.patch(f"/api/notifications/{theirs_id}/read", headers=user_headers).status_code == 404
    assert client.delete(f"/api/notifications/{theirs_id}", headers=user_headers).status_code == 404

    assert client.delete(f"/api/notifications/{mine_id}", headers=user_headers).status_code == 200
    assert db.get(Notification, mine_id) is None


def test_mark_all_read(client, db: Session, user, user_headers):
    for _ in range(3):
        _notify(db, user)

    response = client.post("/api/notifications/mark-all-read", headers=user_headers)

    assert response.status_code == 200
    assert db.query(Notification).filter(Notification.is_read.is_(False)).count() == 0


def test_scheduler_registers_daily_cleanup():
    scheduler = start_scheduler()
    try:
        assert start_scheduler() is scheduler
        job = scheduler.get_job(CLEANUP_JOB_ID)
        assert job is not None
        assert str(job.trigger.fields[5]) == "3"  # hour
    finally:
        stop_scheduler()
