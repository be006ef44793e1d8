"""Rotating session pool with exclusive checkout.

Sessions live in an arena keyed by id. A worker checks one out for a
single request and hands it back with ``release`` or ``retire``; all three
operations are serialized under one condition variable.
"""

import asyncio
import itertools
import logging
from typing import Optional

from listing_scraper import metrics
from listing_scraper.crawl.fingerprints import FingerprintGenerator
from listing_scraper.crawl.models import Session, SessionStatus
from listing_scraper.crawl.proxy import ProxyConfiguration

logger = logging.getLogger(__name__)


class SessionPool:
    """Manages a bounded set of rotating identities."""

    def __init__(
        self,
        max_pool_size: int,
        max_usage_count: int = 50,
        fingerprints: Optional[FingerprintGenerator] = None,
        proxy_configuration: Optional[ProxyConfiguration] = None,
    ):
        if max_pool_size < 1:
            raise ValueError("max_pool_size must be >= 1")
        self.max_pool_size = max_pool_size
        self.max_usage_count = max_usage_count
        self.fingerprints = fingerprints or FingerprintGenerator()
        self.proxy_configuration = proxy_configuration

        self._sessions: dict[str, Session] = {}  # healthy sessions only
        self._idle: list[str] = []
        self._checked_out: set[str] = set()
        self._retired_ids: set[str] = set()
        self._shared_cookies: list[dict] = []
        self._ids = itertools.count(1)
        self._cond = asyncio.Condition()

    def _create_session(self) -> Session:
        session_id = f"session_{next(self._ids)}"
        session = Session(
            id=session_id,
            max_usage_count=self.max_usage_count,
            user_agent=self.fingerprints.next_user_agent(),
            fingerprint=self.fingerprints.next_fingerprint(),
            proxy=self.proxy_configuration.new_proxy(session_id) if self.proxy_configuration else None,
            cookies=[dict(c) for c in self._shared_cookies],
        )
        self._sessions[session_id] = session
        logger.debug(f"Created {session_id} ({len(self._sessions)}/{self.max_pool_size})")
        return session

    async def checkout(self) -> Session:
        """
        Get a healthy session for exclusive use.

        Reuses an idle session, creates one while under capacity, and
        otherwise waits until a session is released or retired.
        """
        async with self._cond:
            while True:
                while self._idle:
                    session_id = self._idle.pop(0)
                    session = self._sessions.get(session_id)
                    if session is not None and session.is_usable:
                        self._checked_out.add(session_id)
                        return session
                if len(self._sessions) < self.max_pool_size:
                    session = self._create_session()
                    self._checked_out.add(session.id)
                    return session
                await self._cond.wait()

    async def release(self, session: Session) -> None:
        """Return a session after a request; retires it once its usage is spent."""
        async with self._cond:
            if session.id not in self._checked_out:
                logger.warning(f"release: {session.id} is not checked out")
                return
            self._checked_out.discard(session.id)
            session.usage_count += 1
            if session.usage_count >= session.max_usage_count:
                self._retire_locked(session, cause="exhausted")
            else:
                self._idle.append(session.id)
            self._cond.notify_all()

    async def retire(self, session: Session) -> None:
        """Remove a session from rotation permanently."""
        async with self._cond:
            self._checked_out.discard(session.id)
            if session.id in self._idle:
                self._idle.remove(session.id)
            self._retire_locked(session, cause="blocked")
            self._cond.notify_all()

    def _retire_locked(self, session: Session, cause: str) -> None:
        if session.status == SessionStatus.RETIRED:
            return
        session.status = SessionStatus.RETIRED
        self._sessions.pop(session.id, None)
        self._retired_ids.add(session.id)
        metrics.record_session_retired(cause)
        logger.info(f"Retired {session.id} ({cause}, used {session.usage_count}x)")

    async def share_cookies(self, cookies: list[dict]) -> None:
        """Copy cookies (e.g. from a login step) into every live and future session."""
        async with self._cond:
            self._shared_cookies = [dict(c) for c in cookies]
            for session in self._sessions.values():
                session.cookies = [dict(c) for c in cookies]

    def is_retired(self, session_id: str) -> bool:
        return session_id in self._retired_ids

    @property
    def checked_out_count(self) -> int:
        return len(self._checked_out)

    def get_stats(self) -> dict[str, int]:
        return {
            "healthy": len(self._sessions),
            "idle": len(self._idle),
            "checked_out": len(self._checked_out),
            "retired": len(self._retired_ids),
        }
