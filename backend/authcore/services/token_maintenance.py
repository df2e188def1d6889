"""Background worker purging expired refresh tokens and sessions."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from authcore.config import settings
from authcore.services.refresh_token_service import refresh_token_service
from authcore.services.session_service import session_service

logger = logging.getLogger(__name__)


class TokenMaintenanceWorker:
    """Periodic store maintenance, kept out of the request path."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        interval_seconds: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._heartbeat: float = 0.0
        self._runs: int = 0
        self._purged_tokens: int = 0
        self._expired_sessions: int = 0
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval if self._interval is not None else settings.MAINTENANCE_INTERVAL_SECONDS

    def _new_session(self) -> Session:
        if self._session_factory is None:
            from authcore.core.database import SessionLocal

            self._session_factory = SessionLocal
        return self._session_factory()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run_loop, name="token-maintenance", daemon=True)
        self._thread.start()
        logger.info("Token maintenance worker started")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        logger.info("Token maintenance worker stopped")

    def status(self) -> dict:
        return {
            "running": self.is_running(),
            "last_heartbeat": self._heartbeat,
            "runs": self._runs,
            "purged_tokens": self._purged_tokens,
            "expired_sessions": self._expired_sessions,
        }

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as exc:
                logger.exception("Token maintenance run failed: %s", exc)
            self._heartbeat = time.time()
            self._stop_event.wait(max(1.0, self.interval))

    def run_once(self) -> dict:
        """Purge expired refresh tokens and deactivate expired sessions once."""
        db = self._new_session()
        try:
            purged = refresh_token_service.purge_expired(db)
            expired = session_service.deactivate_expired(db)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        with self._lock:
            self._runs += 1
            self._purged_tokens += purged
            self._expired_sessions += expired
        return {"purged_tokens": purged, "expired_sessions": expired}


token_maintenance_worker = TokenMaintenanceWorker()
