# /botengine/services/lock_service.py

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator

from botengine.config.settings import settings
from botengine.models.session import BotSession
from botengine.services.db_service import db_service
from botengine.utils.metrics import session_lock_counter

logger = logging.getLogger(__name__)


class SessionLockManager:
    """
    Per-(tenant, user) exclusivity for one message-handling pass.

    All coordination lives on the session record itself, so any number of
    workers or processes can share it. Acquisition never waits: a caller that
    loses simply gets False back and must not process the message.
    """

    def __init__(self, store=db_service, timeout_seconds: int | None = None):
        self.store = store
        self.timeout = timedelta(seconds=timeout_seconds or settings.bot_lock_timeout_seconds)

    async def acquire(self, tenant_id: str, user_id: str) -> bool:
        now = datetime.now(timezone.utc)
        cutoff = now - self.timeout
        try:
            if await self.store.try_lock_session(tenant_id, user_id, now, cutoff):
                session_lock_counter.labels(status="acquired").inc()
                return True

            # Nothing matched: either the lock is held and fresh, or there is no session yet.
            if await self.store.get_session(tenant_id, user_id) is not None:
                session_lock_counter.labels(status="contended").inc()
                logger.info(f"Session {tenant_id}/{user_id} is locked by another invocation")
                return False

            fresh = BotSession.fresh(tenant_id, user_id, locked=True)
            if await self.store.insert_session(fresh.model_dump()):
                session_lock_counter.labels(status="created").inc()
                return True

            session_lock_counter.labels(status="contended").inc()
            logger.info(f"Session {tenant_id}/{user_id} was created concurrently; not acquiring")
            return False
        except Exception as e:
            session_lock_counter.labels(status="error").inc()
            logger.error(f"Lock acquisition failed for {tenant_id}/{user_id}: {e}", exc_info=True)
            return False

    async def release(self, tenant_id: str, user_id: str) -> None:
        try:
            await self.store.unlock_session(tenant_id, user_id)
        except Exception as e:
            # A lock that cannot be released expires after the timeout.
            logger.error(f"Failed to release lock for {tenant_id}/{user_id}: {e}", exc_info=True)

    @asynccontextmanager
    async def hold(self, tenant_id: str, user_id: str) -> AsyncIterator[bool]:
        """
        Try to take the lock for the duration of the block.

        Yields whether the lock was acquired; when it was, it is released on
        every exit path.
        """
        acquired = await self.acquire(tenant_id, user_id)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(tenant_id, user_id)
