"""Notification persistence and presence-aware real-time delivery."""

import time
from collections.abc import Sequence
from typing import Any

from taskboard_service.auth.authenticator import Identity
from taskboard_service.errors import AuthorizationError, NotFoundError, ValidationError
from taskboard_service.models import Notification, NotificationType, User, format_timestamp, utc_now
from taskboard_service.realtime.channels import NEW_NOTIFICATION, ChannelHub
from taskboard_service.realtime.presence import PresenceRegistry
from taskboard_service.storage.document_store import DocumentStore
from taskboard_service.utils.logging import get_logger
from taskboard_service.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()


class NotificationDispatcher:
    """Creates notifications and pushes them to connected recipients.

    The stored record is the delivery guarantee: it is written before any
    push is attempted and stays listable for every recipient. Real-time push
    and linking the notification to its task happen afterwards, once each,
    and their failures are only logged. A notification can therefore exist
    without being linked from its task; nothing rolls it back.
    """

    def __init__(
        self,
        store: DocumentStore,
        presence: PresenceRegistry,
        hub: ChannelHub,
        enforce_reader_identity: bool = False,
    ) -> None:
        """Initialize dispatcher.

        Args:
            store: Document store
            presence: Registry of connected users
            hub: Connected channels
            enforce_reader_identity: Only let callers acknowledge notifications for themselves
        """
        self.store = store
        self.presence = presence
        self.hub = hub
        self.enforce_reader_identity = enforce_reader_identity

    async def dispatch(
        self,
        recipients: Sequence[str],
        text: str,
        related_task: str | None = None,
        noti_type: NotificationType | str = NotificationType.ALERT,
    ) -> Notification:
        """Persist a notification and push it to recipients who are online.

        Args:
            recipients: User IDs to notify (duplicates ignored)
            text: Notification text
            related_task: Task the notification is about
            noti_type: Notification category

        Returns:
            The persisted notification

        Raises:
            ValidationError: If recipients or text are empty, or the type is unknown
            NotFoundError: If related_task does not exist
            PersistenceError: If the notification could not be stored
        """
        start = time.perf_counter()

        team = [r.strip() for r in recipients if isinstance(r, str) and r.strip()]
        if not team or not text or not text.strip():
            raise ValidationError("Team members and notification text are required")

        try:
            kind = NotificationType(noti_type or NotificationType.ALERT)
        except ValueError as e:
            raise ValidationError(f"Invalid notification type: {noti_type}") from e

        if related_task and await self.store.get("tasks", related_task) is None:
            raise NotFoundError("Task", related_task)

        notification = Notification(
            team=team,
            text=text,
            task=related_task or None,
            noti_type=kind,
        )
        await self.store.insert("notifications", notification.to_document())
        metrics.notifications_created_total.labels(noti_type=kind.value).inc()

        delivered = await self._push(notification)

        if notification.task:
            await self._link_task(notification.task, notification.id)

        logger.info(
            "notification_dispatched",
            notification_id=notification.id,
            recipients=len(notification.team),
            delivered=delivered,
            task_id=notification.task,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        return notification

    async def _push(self, notification: Notification) -> int:
        """Push to every recipient with an active channel.

        Returns:
            Number of recipients the event was delivered to
        """
        payload = {**notification.to_api(), "isRealTime": True}
        delivered = 0

        for user_id in notification.team:
            channel_id = await self.presence.channel_of(user_id)
            if channel_id is None:
                metrics.record_push("offline")
                continue

            try:
                await self.hub.send(channel_id, NEW_NOTIFICATION, payload)
            except Exception as e:
                metrics.record_push("failed")
                metrics.best_effort_failures_total.labels(effect="realtime_push").inc()
                logger.error(
                    "realtime_push_failed",
                    notification_id=notification.id,
                    user_id=user_id,
                    channel_id=channel_id,
                    error=str(e),
                )
                continue

            metrics.record_push("delivered")
            delivered += 1

        return delivered

    async def _link_task(self, task_id: str, notification_id: str) -> None:
        """Append a notification to its task's notification list."""
        try:
            linked = await self.store.push("tasks", task_id, "notifications", notification_id)
        except Exception as e:
            metrics.best_effort_failures_total.labels(effect="task_link").inc()
            logger.error(
                "notification_task_link_failed",
                notification_id=notification_id,
                task_id=task_id,
                error=str(e),
            )
            return

        if not linked:
            metrics.best_effort_failures_total.labels(effect="task_link").inc()
            logger.warning(
                "notification_task_link_missing",
                notification_id=notification_id,
                task_id=task_id,
            )

    async def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """Notifications addressed to a user, newest first.

        `team` is populated with the requesting user only and `task` with the
        task's title, status and due date.

        Args:
            user_id: Recipient

        Returns:
            API-shaped notifications
        """
        user_doc = await self.store.get("users", user_id)
        if user_doc is None:
            return []
        user = User.model_validate(user_doc)
        member = user.to_api(include={"id", "name", "email"})

        docs = await self.store.find(
            "notifications",
            {"team": user_id},
            sort="created_at",
            descending=True,
        )

        tasks: dict[str, dict[str, Any] | None] = {}
        results = []
        for doc in docs:
            notification = Notification.model_validate(doc)
            data = notification.to_api()
            data["team"] = [member]

            if notification.task:
                if notification.task not in tasks:
                    task_doc = await self.store.get("tasks", notification.task)
                    tasks[notification.task] = (
                        {
                            "id": task_doc["id"],
                            "title": task_doc.get("title"),
                            "status": task_doc.get("status"),
                            "dueDate": task_doc.get("due_date"),
                        }
                        if task_doc
                        else None
                    )
                data["task"] = tasks[notification.task]

            results.append(data)

        return results

    async def mark_read(
        self,
        notification_id: str,
        user_id: str,
        caller: Identity | None = None,
    ) -> Notification:
        """Record that a recipient has read a notification.

        Repeating the call for the same user changes nothing. By default any
        caller may acknowledge on behalf of any recipient; with
        `enforce_reader_identity` the caller must be that recipient.

        Args:
            notification_id: Notification to acknowledge
            user_id: Recipient acknowledging it
            caller: Authenticated caller, checked when enforcing reader identity

        Returns:
            The notification after acknowledgment

        Raises:
            ValidationError: If an ID is missing or the user is not a recipient
            AuthorizationError: If reader identity is enforced and the caller differs
            NotFoundError: If the notification does not exist
        """
        if not notification_id or not user_id:
            raise ValidationError("notificationId and userId are required")

        if self.enforce_reader_identity and caller is not None and caller.user_id != user_id:
            raise AuthorizationError("Cannot mark notifications read for another user")

        doc = await self.store.get("notifications", notification_id)
        if doc is None:
            raise NotFoundError("Notification", notification_id)

        notification = Notification.model_validate(doc)
        if not notification.is_recipient(user_id):
            raise ValidationError("User is not a recipient of this notification")

        if notification.mark_read(user_id):
            if not await self.store.push("notifications", notification_id, "is_read", user_id, unique=True):
                raise NotFoundError("Notification", notification_id)
            metrics.notifications_read_total.inc()
            logger.info("notification_read", notification_id=notification_id, user_id=user_id)

        return notification

    async def relay(self, user_id: str, message: str) -> bool:
        """Push an unpersisted message to a user if they are connected.

        Returns:
            True if the message was delivered
        """
        channel_id = await self.presence.channel_of(user_id)
        if channel_id is None:
            metrics.record_push("offline")
            return False

        payload = {"message": message, "timestamp": format_timestamp(utc_now())}
        try:
            await self.hub.send(channel_id, NEW_NOTIFICATION, payload)
        except Exception as e:
            metrics.record_push("failed")
            logger.error("realtime_relay_failed", user_id=user_id, channel_id=channel_id, error=str(e))
            return False

        metrics.record_push("delivered")
        return True
