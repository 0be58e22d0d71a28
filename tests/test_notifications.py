import pytest
from yoga_service.notifications import (
    LocalNotification,
    MessageRelay,
    NotificationPublisher,
    TopicSubscriptions,
    course_topic,
)

from conftest import FakeMessaging


def test_course_topic():
    assert course_topic("abc123") == "course_abc123"


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe():
    fake = FakeMessaging()
    topics = TopicSubscriptions(fake)

    assert await topics.subscribe_to_course(["token-1", "token-2"], "abc")
    assert await topics.unsubscribe_from_course(["token-1"], "abc")
    assert fake.calls == [
        ("subscribe", ["token-1", "token-2"], "course_abc"),
        ("unsubscribe", ["token-1"], "course_abc"),
    ]


@pytest.mark.asyncio
async def test_subscribe_reports_partial_failure():
    topics = TopicSubscriptions(FakeMessaging(failure_count=1))
    assert not await topics.subscribe_to_course(["token-1", "token-2"], "abc")


@pytest.mark.asyncio
async def test_subscribe_reports_errors():
    topics = TopicSubscriptions(FakeMessaging(error=ValueError("no app")))
    assert not await topics.subscribe_to_course(["token-1"], "abc")


@pytest.mark.asyncio
async def test_publish_targets_course_topic():
    fake = FakeMessaging()
    publisher = NotificationPublisher(fake)

    message_id = await publisher.publish("abc", "Class Cancelled", "See you next week")

    assert message_id == "projects/yoga/messages/1"
    [(_, message, topic)] = fake.calls
    assert topic == "course_abc"
    assert message.data == {"title": "Class Cancelled", "message": "See you next week"}
    assert message.notification.title == "Class Cancelled"


@pytest.mark.asyncio
async def test_publish_failure_returns_none():
    publisher = NotificationPublisher(FakeMessaging(error=ValueError("no app")))
    assert await publisher.publish("abc", "Title", "Body") is None


class TestMessageRelay:
    def setup_method(self):
        self.shown = []
        self.tokens = []
        self.relay = MessageRelay(sink=self.shown.append, register_token=self.tokens.append)

    def test_notification_payload(self):
        self.relay.handle_message({"from": "/topics/course_abc", "notification": {"title": "Hi", "body": "There"}})
        assert [(n.title, n.body) for n in self.shown] == [("Hi", "There")]

    def test_data_payload(self):
        self.relay.handle_message({"data": {"title": "Moved", "message": "Studio B"}})
        assert [(n.title, n.body) for n in self.shown] == [("Moved", "Studio B")]

    def test_both_payloads_shown_twice(self):
        shown = self.relay.handle_message(
            {
                "notification": {"title": "Hi", "body": "There"},
                "data": {"title": "Hi", "message": "There"},
            }
        )
        assert len(shown) == 2
        assert shown == self.shown

    def test_incomplete_data_payload_ignored(self):
        assert self.relay.handle_message({"data": {"title": "Moved"}}) == []
        assert self.shown == []

    def test_single_channel(self):
        [notification] = self.relay.handle_message({"notification": {"title": "Hi", "body": "There"}})
        assert notification.channel_id == LocalNotification("a", "b").channel_id

    def test_new_token_registered(self):
        self.relay.handle_new_token("token-9")
        assert self.tokens == ["token-9"]
