from datetime import timedelta

from authcore.core.security import utcnow
from authcore.models.security import RefreshToken
from authcore.services.refresh_token_service import RefreshTokenService
from authcore.services.token_service import TokenService
from authcore.services.user_service import user_service


def _setup(db, config):
    user = user_service.create_user(db, email="tokens@example.com", password_hash="x")
    db.commit()
    return user, TokenService(config)


def test_issue_refresh_token_persists_record(db, config):
    user, tokens = _setup(db, config)
    record = tokens.issue_refresh_token(db, user, "agent", "127.0.0.1")
    db.commit()

    stored = RefreshTokenService.find_active_by_token(db, record.token)
    assert stored is not None
    assert stored.user_id == user.id
    assert stored.user_agent == "agent"
    assert stored.ip_address == "127.0.0.1"
    assert stored.is_active is True
    assert stored.expires_at - stored.created_at == timedelta(days=7)


def test_find_active_checks_revocation_and_expiry(db, config):
    user, tokens = _setup(db, config)
    revoked = tokens.issue_refresh_token(db, user)
    expired = tokens.issue_refresh_token(db, user)
    expired.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()
    RefreshTokenService.revoke(db, revoked.token)
    db.commit()

    assert RefreshTokenService.find_active_by_token(db, revoked.token) is None
    assert RefreshTokenService.find_active_by_token(db, expired.token) is None
    assert RefreshTokenService.find_by_token(db, expired.token).is_expired is True
    assert RefreshTokenService.find_active_by_token(db, "") is None


def test_revoke_is_compare_and_set(db, config):
    user, tokens = _setup(db, config)
    old = tokens.issue_refresh_token(db, user)
    new = tokens.issue_refresh_token(db, user)
    db.commit()

    assert RefreshTokenService.revoke(db, old.token, replaced_by=new.token) is True
    assert RefreshTokenService.revoke(db, old.token, replaced_by="someone-else") is False
    db.commit()

    stored = RefreshTokenService.find_by_token(db, old.token)
    assert stored.revoked is True
    assert stored.revoked_at is not None
    assert stored.replaced_by_token == new.token
    assert stored.is_active is False


def test_revoke_require_unexpired(db, config):
    user, tokens = _setup(db, config)
    expired = tokens.issue_refresh_token(db, user)
    expired.expires_at = utcnow() - timedelta(seconds=1)
    db.commit()

    assert RefreshTokenService.revoke(db, expired.token, require_unexpired=True) is False
    assert RefreshTokenService.revoke(db, expired.token) is True


def test_revoke_all_for_user_and_session(db, config):
    user, tokens = _setup(db, config)
    other = user_service.create_user(db, email="bystander@example.com", password_hash="x")
    db.commit()
    a = tokens.issue_refresh_token(db, user, session_id="s-1")
    b = tokens.issue_refresh_token(db, user, session_id="s-2")
    foreign = tokens.issue_refresh_token(db, other)
    db.commit()

    assert RefreshTokenService.revoke_for_session(db, "s-1") == 1
    db.commit()
    assert RefreshTokenService.find_active_by_token(db, a.token) is None
    assert RefreshTokenService.find_active_by_token(db, b.token) is not None

    assert RefreshTokenService.revoke_all_for_user(db, user.id) == 1
    db.commit()
    assert RefreshTokenService.find_active_by_token(db, b.token) is None
    assert RefreshTokenService.find_active_by_token(db, foreign.token) is not None


def test_revoke_lineage_follows_replacement_links(db, config):
    user, tokens = _setup(db, config)
    first = tokens.issue_refresh_token(db, user)
    second = tokens.issue_refresh_token(db, user)
    third = tokens.issue_refresh_token(db, user)
    unrelated = tokens.issue_refresh_token(db, user)
    db.commit()
    RefreshTokenService.revoke(db, first.token, replaced_by=second.token)
    RefreshTokenService.revoke(db, second.token, replaced_by=third.token)
    db.commit()

    assert RefreshTokenService.revoke_lineage(db, first.token) == 1
    db.commit()
    assert RefreshTokenService.find_active_by_token(db, third.token) is None
    assert RefreshTokenService.find_active_by_token(db, unrelated.token) is not None


def test_purge_expired(db, config):
    user, tokens = _setup(db, config)
    stale = tokens.issue_refresh_token(db, user)
    live = tokens.issue_refresh_token(db, user)
    stale.expires_at = utcnow() - timedelta(days=1)
    db.commit()

    assert RefreshTokenService.purge_expired(db) == 1
    assert db.query(RefreshToken).count() == 1
    assert RefreshTokenService.find_by_token(db, live.token) is not None
