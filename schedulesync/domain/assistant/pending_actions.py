"""
Pending assistant actions - short-lived conversation state.

A user has at most one live row per action type; a newer request of the same
type replaces the older one. Rows past `expires_at` are ignored on read and
removed by `PendingActionSweeper`.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from ...config import (
    PENDING_ACTION_SWEEP_DELAY,
    PENDING_ACTION_SWEEP_INTERVAL,
    PENDING_ACTION_TTL_MINUTES,
)
from ...models import AIPendingAction

logger = logging.getLogger(__name__)

CONFIRMABLE_ACTIONS = ("cancel", "reschedule")


class PendingActionRepository:
    """Database operations for ai_pending_actions"""

    @staticmethod
    def upsert(
        db: Session,
        user_id: int,
        action_type: str,
        action_data: dict,
        now: datetime,
        ttl_minutes: int = PENDING_ACTION_TTL_MINUTES,
    ) -> AIPendingAction:
        """Store `action_data` for (user, type), replacing any previous row"""
        expires_at = now + timedelta(minutes=ttl_minutes)
        action = (
            db.query(AIPendingAction)
            .filter(AIPendingAction.user_id == user_id, AIPendingAction.action_type == action_type)
            .first()
        )
        if action:
            action.action_data = action_data
            action.created_at = now
            action.expires_at = expires_at
        else:
            action = AIPendingAction(
                user_id=user_id,
                action_type=action_type,
                action_data=action_data,
                created_at=now,
                expires_at=expires_at,
            )
            db.add(action)

        db.commit()
        db.refresh(action)
        return action

    @staticmethod
    def get_live(
        db: Session, user_id: int, action_type: str, now: datetime
    ) -> Optional[AIPendingAction]:
        return (
            db.query(AIPendingAction)
            .filter(
                AIPendingAction.user_id == user_id,
                AIPendingAction.action_type == action_type,
                AIPendingAction.expires_at > now,
            )
            .first()
        )

    @staticmethod
    def get_latest_live(
        db: Session, user_id: int, action_types: Iterable[str], now: datetime
    ) -> Optional[AIPendingAction]:
        """Newest live row among `action_types`"""
        return (
            db.query(AIPendingAction)
            .filter(
                AIPendingAction.user_id == user_id,
                AIPendingAction.action_type.in_(list(action_types)),
                AIPendingAction.expires_at > now,
            )
            .order_by(AIPendingAction.created_at.desc(), AIPendingAction.id.desc())
            .first()
        )

    @staticmethod
    def delete(db: Session, action: AIPendingAction) -> None:
        db.delete(action)
        db.commit()

    @staticmethod
    def delete_for_user(
        db: Session, user_id: int, action_types: Iterable[str], now: datetime
    ) -> int:
        """Drop the user's rows of these types. Returns how many were still live."""
        query = db.query(AIPendingAction).filter(
            AIPendingAction.user_id == user_id,
            AIPendingAction.action_type.in_(list(action_types)),
        )
        live = query.filter(AIPendingAction.expires_at > now).count()
        query.delete(synchronize_session=False)
        db.commit()
        return live

    @staticmethod
    def delete_expired(db: Session, now: datetime) -> int:
        deleted = (
            db.query(AIPendingAction)
            .filter(AIPendingAction.expires_at <= now)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted


def purge_expired_actions(session_factory: Callable[[], Session], now: Optional[datetime] = None) -> int:
    """Delete expired pending actions in a fresh session. Returns the number removed."""
    db = session_factory()
    try:
        deleted = PendingActionRepository.delete_expired(db, now or datetime.now())
        if deleted:
            logger.info(f"🧹 Removed {deleted} expired pending AI actions")
        return deleted
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


class PendingActionSweeper:
    """
    Periodic cleanup of expired pending actions.

    Owned by the application lifespan: `start()` schedules the loop on the
    running event loop and `stop()` cancels it. The first sweep runs after
    `delay` seconds, then every `interval` seconds.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval: float = PENDING_ACTION_SWEEP_INTERVAL,
        delay: float = PENDING_ACTION_SWEEP_DELAY,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.interval = interval
        self.delay = delay
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        return await asyncio.to_thread(purge_expired_actions, self.session_factory, self.clock())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        while True:
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"❌ Pending action sweep failed: {e}")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="pending-action-sweeper")
        logger.info(
            f"🕐 Pending action sweeper started (delay={self.delay}s, interval={self.interval}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Pending action sweeper stopped")
