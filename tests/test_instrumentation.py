"""Tests for the event log and small numeric helpers."""
from sqlalchemy.orm import Session

from storybook.models import EventLog, User
from storybook.utils.instrumentation import log_event, log_recommendation_impression
from storybook.utils.numbers import round_half_up


def test_log_event_flushes_into_caller_transaction(db: Session, user: User):
    assert log_event(db, "story_opened", user_id=user.id, properties={"source": "home"}) is True
    db.commit()

    event = db.query(EventLog).one()
    assert event.event_name == "story_opened"
    assert event.properties == {"source": "home"}


def test_failed_event_write_leaves_session_usable(db: Session, user: User):
    user.points = 10

    # event_name is NOT NULL, so this fails at flush time
    assert log_event(db, None, user_id=user.id) is False

    assert log_recommendation_impression(db, user.id, "req-1", []) is True
    db.commit()

    db.refresh(user)
    assert user.points == 10
    event = db.query(EventLog).one()
    assert event.properties == {"count": 0, "story_ids": [], "top_story_id": None}


def test_round_half_up():
    assert round_half_up(2.25) == 2.3
    assert round_half_up(4.333) == 4.3
    assert round_half_up(1.5, places=0) == 2.0
    assert round_half_up(0) == 0.0
