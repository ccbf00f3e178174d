"""
Fan-out broadcaster: after a committed mutation, tell everybody else.

Three channels, each with its own error boundary:
    live       WebSocket rooms (LiveRoomHub)
    push       VAPID / FCM devices of every recipient
    persisted  one Notification row per recipient

``publish_*`` only schedules the work and returns; delivery runs on a worker
pool with its own database session, so a slow or failing provider never
touches the request that triggered it.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Callable, Iterable

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from flowmoney.application.membership import list_member_ids
from flowmoney.application.push_service import send_push_to_user
from flowmoney.domain.notification import NotificationPayload
from flowmoney.infrastructure.db.models import NotificationModel
from flowmoney.infrastructure.db.session import open_session
from flowmoney.infrastructure.realtime.hub import LiveRoomHub, joint_account_room

logger = logging.getLogger(__name__)


class FanoutBroadcaster:
    def __init__(
        self,
        hub: LiveRoomHub,
        session_factory: Callable[[], Session] = open_session,
        workers: int = 4,
        spawn: Callable | None = None,
        push_sender: Callable[[Session, str, NotificationPayload], int] = send_push_to_user,
    ):
        """
        ``spawn(fn, *args)`` schedules a delivery; defaults to a thread pool of
        ``workers`` threads. Tests pass an inline spawn.
        """
        self.hub = hub
        self.session_factory = session_factory
        self.push_sender = push_sender
        self._executor: ThreadPoolExecutor | None = None
        if spawn is None:
            self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fanout")
            spawn = self._executor.submit
        self._spawn = spawn

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Public API (non-blocking)
    # ------------------------------------------------------------------

    def publish_to_account(
        self,
        joint_account_id: str,
        exclude_user_id: str | None,
        event: str,
        data: dict,
        payload: NotificationPayload | None = None,
        notification_type: str | None = None,
    ) -> None:
        """Every member of the account except ``exclude_user_id`` (the actor)."""
        self._schedule(
            self._deliver_to_account,
            joint_account_id, exclude_user_id, event, jsonable_encoder(data),
            self._encode(payload), notification_type,
        )

    def publish_to_users(
        self,
        user_ids: Iterable[str],
        event: str,
        data: dict,
        payload: NotificationPayload | None = None,
        notification_type: str | None = None,
    ) -> None:
        """Explicit recipients through their personal rooms (invites, removals, deletes)."""
        self._schedule(
            self._deliver_to_users,
            list(dict.fromkeys(user_ids)), event, jsonable_encoder(data),
            self._encode(payload), notification_type,
        )

    def revoke_live_access(self, joint_account_id: str, user_ids: Iterable[str]) -> None:
        """
        Take the users' sockets out of the account room (removal, leave, delete).

        Runs inline, before anything published afterwards can reach the room.
        """
        room = joint_account_room(joint_account_id)
        for user_id in user_ids:
            try:
                self.hub.evict(room, user_id)
            except Exception:
                logger.exception("Could not evict user %s from %s", user_id, room)

    # ------------------------------------------------------------------
    # Delivery (worker side)
    # ------------------------------------------------------------------

    def _schedule(self, fn, *args) -> None:
        try:
            self._spawn(fn, *args)
        except RuntimeError:
            # pool already shut down
            logger.warning("Fan-out dropped, worker pool unavailable: %s", fn.__name__)

    @staticmethod
    def _encode(payload: NotificationPayload | None) -> NotificationPayload | None:
        if payload is None:
            return None
        return replace(payload, data=jsonable_encoder(payload.data))

    def _deliver_to_account(
        self, joint_account_id, exclude_user_id, event, data, payload, notification_type
    ) -> None:
        try:
            self.hub.emit_to_joint_account(joint_account_id, event, data, exclude_user_id=exclude_user_id)
        except Exception:
            logger.exception("Live emit %s to joint account %s failed", event, joint_account_id)

        if payload is None:
            return

        db = self.session_factory()
        try:
            try:
                recipients = [
                    uid for uid in list_member_ids(db, joint_account_id) if uid != exclude_user_id
                ]
            except Exception:
                logger.exception("Could not resolve members of joint account %s", joint_account_id)
                return
            self._push(db, recipients, payload)
            self._persist(db, recipients, payload, notification_type)
        finally:
            db.close()

    def _deliver_to_users(self, user_ids, event, data, payload, notification_type) -> None:
        for user_id in user_ids:
            try:
                self.hub.emit_to_user(user_id, event, data)
            except Exception:
                logger.exception("Live emit %s to user %s failed", event, user_id)

        if payload is None or not user_ids:
            return

        db = self.session_factory()
        try:
            self._push(db, user_ids, payload)
            self._persist(db, user_ids, payload, notification_type)
        finally:
            db.close()

    def _push(self, db: Session, recipients: list[str], payload: NotificationPayload) -> None:
        for user_id in recipients:
            try:
                self.push_sender(db, user_id, payload)
            except Exception:
                logger.exception("Push to user %s failed", user_id)
                db.rollback()

    def _persist(
        self,
        db: Session,
        recipients: list[str],
        payload: NotificationPayload,
        notification_type: str | None,
    ) -> None:
        for user_id in recipients:
            try:
                db.add(NotificationModel(
                    user_id=user_id,
                    type=notification_type or payload.type,
                    title=payload.title,
                    body=payload.body,
                    data_json=payload.data or None,
                ))
                db.commit()
            except Exception:
                logger.exception("Could not store notification for user %s", user_id)
                db.rollback()
