# yoga_service/notifications.py
"""
Push notification helpers.

Every course has its own messaging topic (``course_<courseId>``). Devices
subscribe to the topics of the courses they follow; the studio publishes
class updates to those topics, and the relay on the receiving side turns
inbound messages into local notifications on a single channel.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from . import config

logger = logging.getLogger(__name__)


def course_topic(course_id: str) -> str:
    return f"{config.COURSE_TOPIC_PREFIX}{course_id}"


class TopicSubscriptions:
    def __init__(self, messaging_client=messaging, app=None):
        self.messaging = messaging_client
        self.app = app

    async def _manage(self, action: str, tokens: Sequence[str], course_id: str) -> bool:
        topic = course_topic(course_id)
        call = getattr(self.messaging, f"{action}_topic")
        try:
            response = await asyncio.to_thread(call, list(tokens), topic, app=self.app)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.error(f"Failed to {action} {topic}: {e}")
            return False
        if response.failure_count:
            logger.error(f"Failed to {action} {topic} for {response.failure_count} of {len(tokens)} devices")
            return False
        logger.info(f"{action.replace('_', ' ').capitalize()} {topic} for {response.success_count} devices")
        return True

    async def subscribe_to_course(self, tokens: Sequence[str], course_id: str) -> bool:
        return await self._manage("subscribe_to", tokens, course_id)

    async def unsubscribe_from_course(self, tokens: Sequence[str], course_id: str) -> bool:
        return await self._manage("unsubscribe_from", tokens, course_id)


class NotificationPublisher:
    def __init__(self, messaging_client=messaging, app=None):
        self.messaging = messaging_client
        self.app = app

    async def publish(self, course_id: str, title: str, message: str) -> Optional[str]:
        topic = course_topic(course_id)
        payload = messaging.Message(
            topic=topic,
            notification=messaging.Notification(title=title, body=message),
            data={"title": title, "message": message},
        )
        try:
            message_id = await asyncio.to_thread(self.messaging.send, payload, app=self.app)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            logger.error(f"Error publishing to {topic}: {e}")
            return None
        logger.info(f"Published {title!r} to {topic}: {message_id}")
        return message_id


# ─────────────────────────────────────────────
# Inbound relay
# ─────────────────────────────────────────────
@dataclass
class LocalNotification:
    title: str
    body: str
    channel_id: str = config.NOTIFICATION_CHANNEL_ID
    channel_name: str = config.NOTIFICATION_CHANNEL_NAME


class LoggingNotificationSink:
    def __call__(self, notification: LocalNotification):
        logger.info(f"[{notification.channel_name}] {notification.title}: {notification.body}")


class MessageRelay:
    def __init__(
        self,
        sink: Optional[Callable[[LocalNotification], None]] = None,
        register_token: Optional[Callable[[str], None]] = None,
    ):
        self.sink = sink or LoggingNotificationSink()
        self.register_token = register_token

    def _show(self, title: str, body: str) -> LocalNotification:
        notification = LocalNotification(title=title, body=body)
        self.sink(notification)
        return notification

    def handle_message(self, message: Dict[str, Any]) -> List[LocalNotification]:
        """
        Render an inbound message.

        A notification payload is shown as is. A data payload is shown when
        it carries both "title" and "message". A message with both payloads
        is shown twice.
        """
        logger.debug(f"Message from: {message.get('from')}")
        shown = []

        notification = message.get("notification")
        if notification is not None:
            shown.append(self._show(notification.get("title") or "", notification.get("body") or ""))

        data = message.get("data") or {}
        if data:
            title = data.get("title")
            body = data.get("message")
            if title is not None and body is not None:
                shown.append(self._show(title, body))
        return shown

    def handle_new_token(self, token: str):
        logger.info(f"Refreshed registration token: {token}")
        if self.register_token is not None:
            self.register_token(token)
