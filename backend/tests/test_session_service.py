from datetime import timedelta

import pytest

from authcore.core.security import utcnow
from authcore.models.session import UserSession
from authcore.services.session_service import SessionService, parse_user_agent
from authcore.services.user_service import user_service

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
IE_11 = "Mozilla/5.0 (Windows NT 10.0; Trident/7.0; rv:11.0) like Gecko"


@pytest.mark.parametrize(
    "user_agent,expected",
    [
        (None, {"device": "Unknown", "browser": "Unknown", "os": "Unknown"}),
        ("", {"device": "Unknown", "browser": "Unknown", "os": "Unknown"}),
        (CHROME_WINDOWS, {"device": "Desktop", "browser": "Chrome", "os": "Windows"}),
        (SAFARI_IPHONE, {"device": "Mobile", "browser": "Safari", "os": "iOS"}),
        (FIREFOX_LINUX, {"device": "Desktop", "browser": "Firefox", "os": "Linux"}),
        (IE_11, {"device": "Desktop", "browser": "Internet Explorer", "os": "Windows"}),
        ("curl/8.4.0", {"device": "Desktop", "browser": "Unknown", "os": "Unknown"}),
    ],
)
def test_parse_user_agent(user_agent, expected):
    assert parse_user_agent(user_agent) == expected


def _user(db, email="sessions@example.com"):
    user = user_service.create_user(db, email=email, password_hash="x")
    db.commit()
    return user


def test_create_sets_seven_day_expiry_and_classification(db, config):
    sessions = SessionService(config)
    user = _user(db)
    record = sessions.create(db, user, CHROME_WINDOWS, "10.0.0.1")
    db.commit()

    assert record.is_active is True
    assert record.browser == "Chrome"
    assert record.os == "Windows"
    assert record.ip_address == "10.0.0.1"
    delta = record.expires_at - record.created_at
    assert delta == timedelta(days=7)
    assert record.is_expired is False


def test_list_active_sorted_by_recent_activity(db, config):
    sessions = SessionService(config)
    user = _user(db)
    older = sessions.create(db, user, CHROME_WINDOWS)
    newer = sessions.create(db, user, FIREFOX_LINUX)
    older.last_activity_at = utcnow() - timedelta(hours=2)
    newer.last_activity_at = utcnow() - timedelta(hours=1)
    db.commit()

    assert [s.session_id for s in sessions.list_active_by_user(db, user.id)] == [
        newer.session_id,
        older.session_id,
    ]

    sessions.touch_activity(db, older.session_id)
    db.commit()
    assert sessions.list_active_by_user(db, user.id)[0].session_id == older.session_id


def test_list_active_skips_inactive_and_expired(db, config):
    sessions = SessionService(config)
    user = _user(db)
    live = sessions.create(db, user)
    ended = sessions.create(db, user)
    stale = sessions.create(db, user)
    stale.expires_at = utcnow() - timedelta(minutes=1)
    db.commit()
    sessions.deactivate_one(db, ended.session_id)
    db.commit()

    assert [s.session_id for s in sessions.list_active_by_user(db, user.id)] == [live.session_id]


def test_deactivate_all_keeps_records(db, config):
    sessions = SessionService(config)
    user = _user(db)
    other = _user(db, "other@example.com")
    sessions.create(db, user)
    sessions.create(db, user)
    foreign = sessions.create(db, other)
    db.commit()

    assert sessions.deactivate_all_for_user(db, user.id) == 2
    db.commit()

    assert db.query(UserSession).filter(UserSession.user_id == user.id).count() == 2
    assert sessions.list_active_by_user(db, user.id) == []
    assert sessions.get(db, foreign.session_id).is_active is True
    assert sessions.deactivate_one(db, foreign.session_id) is True
    assert sessions.deactivate_one(db, foreign.session_id) is False


def test_deactivate_expired(db, config):
    sessions = SessionService(config)
    user = _user(db)
    stale = sessions.create(db, user)
    live = sessions.create(db, user)
    stale.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    assert sessions.deactivate_expired(db) == 1
    assert sessions.get(db, stale.session_id).is_active is False
    assert sessions.get(db, live.session_id).is_active is True
