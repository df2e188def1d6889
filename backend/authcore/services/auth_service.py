"""Authentication orchestrator: login, rotation, logout and mass revocation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from authcore.config import Settings, settings as default_settings
from authcore.core.exceptions import (
    AccountDeactivatedError,
    BadRequestError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    TokenInvalidError,
    UnauthorizedError,
)
from authcore.core.security import (
    generate_one_time_token,
    get_password_hash,
    naive_utc,
    utcnow,
    verify_password,
)
from authcore.models.user import User, AuthProvider
from authcore.schemas.auth import AuthResponse, ExternalIdentity, MessageResponse, RefreshResponse
from authcore.schemas.user import SessionResponse, UserResponse
from authcore.services.notification_service import NotificationSink, NotificationService, redact_email
from authcore.services.refresh_token_service import refresh_token_service
from authcore.services.session_service import SessionService
from authcore.services.token_service import TokenService
from authcore.services.user_service import user_service

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent"


@contextmanager
def _unit_of_work(db: Session) -> Iterator[None]:
    """Commit on success, roll back everything on any failure."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


class AuthService:
    """Coordinate the user, token and session stores.

    Each public method is one all-or-nothing unit: store writes happen inside a
    single transaction and notifications are sent only after it commits.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        notifier: Optional[NotificationSink] = None,
    ) -> None:
        self.config = config or default_settings
        self.tokens = TokenService(self.config)
        self.sessions = SessionService(self.config)
        self.notifier = notifier or NotificationService(self.config)

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------

    def register(
        self,
        db: Session,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> MessageResponse:
        """
        Create a local user pending email verification.

        Raises:
            ConflictError: If a user with this email already exists
        """
        if user_service.get_user_by_email(db, email):
            raise ConflictError("User with this email already exists")

        verification_token = generate_one_time_token()
        try:
            with _unit_of_work(db):
                user = user_service.create_user(
                    db,
                    email=email,
                    password_hash=get_password_hash(password, self.config.BCRYPT_ROUNDS),
                    first_name=first_name,
                    last_name=last_name,
                    provider=AuthProvider.LOCAL,
                )
                user_service.set_verification_token(
                    db,
                    user,
                    verification_token,
                    utcnow() + timedelta(hours=self.config.EMAIL_VERIFICATION_EXPIRE_HOURS),
                )
                user_id, user_email = user.id, user.email
        except IntegrityError:
            raise ConflictError("User with this email already exists")

        logger.info(f"New user registered: {redact_email(user_email)}")
        self._notify(self.notifier.notify_verification, user_email, verification_token)

        return MessageResponse(
            message="Registration successful. Please check your email to verify your account.",
            user_id=user_id,
        )

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResponse:
        """
        Authenticate with email and password and open a new session.

        Unknown email, federated account without password and wrong password
        all raise the same InvalidCredentialsError.
        """
        user = user_service.get_user_by_email(db, email)
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login attempt for {redact_email(email or '')}")
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDeactivatedError()

        return self._open_session(db, user, user_agent, ip_address)

    def login_with_external_identity(
        self,
        db: Session,
        identity: ExternalIdentity,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthResponse:
        """
        Sign in an identity verified by an external provider.

        Links to an existing user by email or by (provider, provider_id),
        otherwise creates a pre-verified user without a password.
        """
        user = user_service.find_by_email_or_provider(
            db, identity.email, identity.provider, identity.provider_id
        )
        if user is not None and not user.is_active:
            raise AccountDeactivatedError()

        try:
            with _unit_of_work(db):
                if user is not None:
                    user_service.merge_external_profile(
                        db, user, provider=identity.provider, avatar_url=identity.avatar_url
                    )
                else:
                    user = user_service.create_user(
                        db,
                        email=identity.email,
                        first_name=identity.first_name,
                        last_name=identity.last_name,
                        avatar_url=identity.avatar_url,
                        provider=identity.provider,
                        provider_id=identity.provider_id,
                        is_email_verified=True,
                    )
                    logger.info(
                        f"New federated user created: {redact_email(user.email)} ({identity.provider})"
                    )
        except IntegrityError:
            raise ConflictError("User with this email already exists")

        return self._open_session(db, user, user_agent, ip_address)

    def _open_session(
        self,
        db: Session,
        user: User,
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> AuthResponse:
        with _unit_of_work(db):
            session = self.sessions.create(db, user, user_agent, ip_address)
            refresh = self.tokens.issue_refresh_token(
                db, user, user_agent, ip_address, session_id=session.session_id
            )
            user_service.touch_last_login(db, user)
            session_id, refresh_secret = session.session_id, refresh.token

        access_token = self.tokens.issue_access_token(user, session_id)
        logger.info(f"User logged in: {user.id} (session {session_id})")

        return AuthResponse(
            access_token=access_token,
            refresh_token=refresh_secret,
            expires_in=self.tokens.expires_in,
            session_id=session_id,
            user=UserResponse.model_validate(user),
        )

    # ------------------------------------------------------------------
    # Rotation and revocation
    # ------------------------------------------------------------------

    def refresh(
        self,
        db: Session,
        refresh_token: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> RefreshResponse:
        """
        Exchange a refresh token for a new access/refresh pair.

        The presented token is revoked and linked to its successor in the same
        transaction as the successor is inserted. The revocation is a
        conditional update, so of two concurrent calls with the same secret
        exactly one commits and the other raises TokenInvalidError.
        """
        record = refresh_token_service.find_by_token(db, refresh_token)
        if record is None:
            raise TokenInvalidError()

        if not record.is_active:
            if record.revoked and record.replaced_by_token:
                self._handle_reuse(db, record.user_id, record.replaced_by_token)
            raise TokenInvalidError()

        user = user_service.get_user_by_id(db, record.user_id)
        if not user or not user.is_active:
            raise AccountDeactivatedError()

        session_id = record.session_id
        with _unit_of_work(db):
            successor = self.tokens.issue_refresh_token(
                db,
                user,
                user_agent or record.user_agent,
                ip_address or record.ip_address,
                session_id=session_id,
            )
            new_secret = successor.token
            if not refresh_token_service.revoke(
                db, refresh_token, replaced_by=new_secret, require_unexpired=True
            ):
                raise TokenInvalidError()
            if session_id:
                self.sessions.touch_activity(db, session_id)

        access_token = self.tokens.issue_access_token(user, session_id)
        logger.info(f"Refresh token rotated for user {user.id}")

        return RefreshResponse(
            access_token=access_token,
            refresh_token=new_secret,
            expires_in=self.tokens.expires_in,
        )

    def _handle_reuse(self, db: Session, user_id: int, successor: str) -> None:
        """A rotated token came back: treat as theft and kill its descendants."""
        logger.warning(f"Reuse of rotated refresh token detected for user {user_id}")
        if not self.config.REFRESH_TOKEN_REUSE_DETECTION:
            return
        with _unit_of_work(db):
            revoked = refresh_token_service.revoke_lineage(db, successor)
        logger.warning(f"Revoked {revoked} descendant refresh token(s) for user {user_id}")

    def logout(
        self,
        db: Session,
        user_id: int,
        refresh_token: Optional[str] = None,
    ) -> MessageResponse:
        """
        End every session of the user and revoke the supplied refresh token.

        Never fails for unknown or already revoked tokens. With
        LOGOUT_REVOKES_ALL_TOKENS every refresh token of the user is revoked too.
        """
        with _unit_of_work(db):
            if refresh_token:
                record = refresh_token_service.find_by_token(db, refresh_token)
                if record is not None and record.user_id == user_id:
                    refresh_token_service.revoke(db, refresh_token)
            deactivated = self.sessions.deactivate_all_for_user(db, user_id)
            if self.config.LOGOUT_REVOKES_ALL_TOKENS:
                refresh_token_service.revoke_all_for_user(db, user_id)

        logger.info(f"User logged out: {user_id} ({deactivated} session(s) ended)")
        return MessageResponse(message="Logged out successfully")

    def revoke_session(self, db: Session, user_id: int, session_id: str) -> MessageResponse:
        """End one session of the user and revoke its refresh token lineage."""
        session = self.sessions.get(db, session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError("Session")

        with _unit_of_work(db):
            self.sessions.deactivate_one(db, session_id)
            refresh_token_service.revoke_for_session(db, session_id)

        logger.info(f"Session revoked: {session_id} (user {user_id})")
        return MessageResponse(message="Session revoked successfully")

    def revoke_all_sessions(self, db: Session, user_id: int) -> MessageResponse:
        """Global sign-out: deactivate every session and revoke every refresh token."""
        with _unit_of_work(db):
            self.sessions.deactivate_all_for_user(db, user_id)
            tokens = refresh_token_service.revoke_all_for_user(db, user_id)

        logger.info(f"All sessions revoked for user {user_id} ({tokens} token(s))")
        return MessageResponse(message="All sessions revoked successfully")

    def deactivate_account(self, db: Session, user_id: int) -> MessageResponse:
        user = self._require_user(db, user_id)
        with _unit_of_work(db):
            user_service.deactivate(db, user)
            refresh_token_service.revoke_all_for_user(db, user_id)
            self.sessions.deactivate_all_for_user(db, user_id)
        return MessageResponse(message="Account deactivated")

    # ------------------------------------------------------------------
    # Email verification and password reset
    # ------------------------------------------------------------------

    def verify_email(self, db: Session, token: str) -> MessageResponse:
        """
        Consume an email verification token.

        Raises:
            BadRequestError: Unknown token or token past its expiry
        """
        user = user_service.find_by_verification_token(db, token)
        if not user:
            raise BadRequestError("Invalid verification token")

        expires = naive_utc(user.email_verification_expires)
        if not expires or expires < utcnow():
            raise BadRequestError("Verification token has expired")

        with _unit_of_work(db):
            user_service.mark_email_verified(db, user)

        logger.info(f"Email verified: {redact_email(user.email)}")
        return MessageResponse(message="Email verified successfully")

    def resend_verification(self, db: Session, email: str) -> MessageResponse:
        """
        Issue a fresh verification token and send it again.

        Raises:
            NotFoundError: No user with this email
            BadRequestError: Email already verified
        """
        user = user_service.get_user_by_email(db, email)
        if not user:
            raise NotFoundError("User")
        if user.is_email_verified:
            raise BadRequestError("Email is already verified")

        verification_token = generate_one_time_token()
        with _unit_of_work(db):
            user_service.set_verification_token(
                db,
                user,
                verification_token,
                utcnow() + timedelta(hours=self.config.EMAIL_VERIFICATION_EXPIRE_HOURS),
            )
            user_email = user.email

        self._notify(self.notifier.notify_verification, user_email, verification_token)
        return MessageResponse(message="Verification email sent")

    def forgot_password(self, db: Session, email: str) -> MessageResponse:
        """Start a password reset. The response never reveals whether the email exists."""
        user = user_service.get_user_by_email(db, email)
        if not user:
            return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

        reset_token = generate_one_time_token()
        with _unit_of_work(db):
            user_service.set_reset_token(
                db,
                user,
                reset_token,
                utcnow() + timedelta(hours=self.config.PASSWORD_RESET_EXPIRE_HOURS),
            )
            user_email = user.email

        logger.info(f"Password reset requested: {redact_email(user_email)}")
        self._notify(self.notifier.notify_password_reset, user_email, reset_token)
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    def reset_password(self, db: Session, token: str, new_password: str) -> MessageResponse:
        """
        Set a new password from a reset token and revoke every outstanding credential.

        Raises:
            BadRequestError: Unknown token or token past its expiry
        """
        user = user_service.find_by_reset_token(db, token)
        if not user:
            raise BadRequestError("Invalid or expired reset token")

        expires = naive_utc(user.password_reset_expires)
        if not expires or expires < utcnow():
            raise BadRequestError("Reset token has expired")

        with _unit_of_work(db):
            user_service.update_password(
                db, user, get_password_hash(new_password, self.config.BCRYPT_ROUNDS)
            )
            revoked = refresh_token_service.revoke_all_for_user(db, user.id)
            self.sessions.deactivate_all_for_user(db, user.id)
            user_id, user_email = user.id, user.email

        logger.info(f"Password reset for user {user_id}; revoked {revoked} refresh token(s)")
        self._notify(self.notifier.notify_password_changed, user_email)
        return MessageResponse(message="Password reset successful")

    # ------------------------------------------------------------------
    # Profile and session views
    # ------------------------------------------------------------------

    def authenticate_access_token(self, db: Session, token: str) -> User:
        """
        Resolve the user behind a bearer access token.

        Raises:
            UnauthorizedError: Invalid/expired token or unknown user
            AccountDeactivatedError: User is deactivated
        """
        payload = self.tokens.decode_access_token(token)
        if not payload:
            raise UnauthorizedError("Invalid or expired token")

        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedError("Invalid token payload")

        user = user_service.get_user_by_id(db, int(user_id))
        if not user:
            raise UnauthorizedError("User not found")
        if not user.is_active:
            raise AccountDeactivatedError()

        session_id = payload.get("sid")
        if session_id:
            with _unit_of_work(db):
                self.sessions.touch_activity(db, session_id)
        return user

    def get_profile(self, db: Session, user_id: int) -> UserResponse:
        return UserResponse.model_validate(self._require_user(db, user_id))

    def update_profile(
        self,
        db: Session,
        user_id: int,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> UserResponse:
        user = self._require_user(db, user_id)
        with _unit_of_work(db):
            user_service.update_profile(
                db, user, first_name=first_name, last_name=last_name, avatar_url=avatar_url
            )
        return UserResponse.model_validate(user)

    def list_sessions(self, db: Session, user_id: int) -> List[SessionResponse]:
        return [
            SessionResponse.model_validate(s)
            for s in self.sessions.list_active_by_user(db, user_id)
        ]

    # ------------------------------------------------------------------

    def _require_user(self, db: Session, user_id: int) -> User:
        user = user_service.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundError("User")
        return user

    def _notify(self, send, *args) -> None:
        """Fire-and-forget: a failed notification never fails the operation."""
        try:
            send(*args)
        except Exception:
            logger.exception(f"Notification {getattr(send, '__name__', send)} failed")


auth_service = AuthService()
