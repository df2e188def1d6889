"""Refresh token store: persistence, compare-and-set revocation and lineage tracking."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from authcore.core.security import utcnow
from authcore.models.security import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenService:
    """Persisted refresh tokens.

    Every revocation is a conditional bulk UPDATE on ``revoked == False`` so two
    concurrent callers can never both observe a successful revocation of the
    same row. Methods flush but leave the commit to the caller.
    """

    @staticmethod
    def insert(db: Session, record: RefreshToken) -> RefreshToken:
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def find_by_token(db: Session, token: str) -> Optional[RefreshToken]:
        if not token:
            return None
        return db.query(RefreshToken).filter(RefreshToken.token == token).first()

    @staticmethod
    def find_active_by_token(db: Session, token: str) -> Optional[RefreshToken]:
        """Return the record only if it is neither revoked nor expired."""
        if not token:
            return None
        return (
            db.query(RefreshToken)
            .filter(
                RefreshToken.token == token,
                RefreshToken.revoked == False,  # noqa: E712
                RefreshToken.expires_at > utcnow(),
            )
            .first()
        )

    @staticmethod
    def revoke(
        db: Session,
        token: str,
        replaced_by: Optional[str] = None,
        *,
        require_unexpired: bool = False,
    ) -> bool:
        """
        Revoke one token if it is still unrevoked.

        Args:
            db: Database session
            token: Secret of the token to revoke
            replaced_by: Secret of the successor when rotating
            require_unexpired: Only revoke if the token has not expired yet

        Returns:
            bool: True if this call flipped the revoked flag
        """
        now = utcnow()
        query = db.query(RefreshToken).filter(
            RefreshToken.token == token,
            RefreshToken.revoked == False,  # noqa: E712
        )
        if require_unexpired:
            query = query.filter(RefreshToken.expires_at > now)
        values = {RefreshToken.revoked: True, RefreshToken.revoked_at: now}
        if replaced_by is not None:
            values[RefreshToken.replaced_by_token] = replaced_by
        updated = query.update(values, synchronize_session=False)
        db.flush()
        return updated == 1

    @staticmethod
    def revoke_all_for_user(db: Session, user_id: int) -> int:
        updated = (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id, RefreshToken.revoked == False)  # noqa: E712
            .update(
                {RefreshToken.revoked: True, RefreshToken.revoked_at: utcnow()},
                synchronize_session=False,
            )
        )
        db.flush()
        return updated

    @staticmethod
    def revoke_for_session(db: Session, session_id: str) -> int:
        updated = (
            db.query(RefreshToken)
            .filter(RefreshToken.session_id == session_id, RefreshToken.revoked == False)  # noqa: E712
            .update(
                {RefreshToken.revoked: True, RefreshToken.revoked_at: utcnow()},
                synchronize_session=False,
            )
        )
        db.flush()
        return updated

    @staticmethod
    def revoke_lineage(db: Session, token: str) -> int:
        """
        Revoke every successor reachable from ``token`` through replacement links.

        Returns:
            int: Number of tokens this call revoked
        """
        revoked = 0
        seen = set()
        current = RefreshTokenService.find_by_token(db, token)
        while current is not None and current.token not in seen:
            seen.add(current.token)
            if RefreshTokenService.revoke(db, current.token):
                revoked += 1
            if not current.replaced_by_token:
                break
            current = RefreshTokenService.find_by_token(db, current.replaced_by_token)
        return revoked

    @staticmethod
    def purge_expired(db: Session) -> int:
        """Delete expired tokens. Maintenance only, never in the request path."""
        deleted = (
            db.query(RefreshToken)
            .filter(RefreshToken.expires_at <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        if deleted:
            logger.info("Purged %s expired refresh tokens", deleted)
        return deleted


refresh_token_service = RefreshTokenService()
