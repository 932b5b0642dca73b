"""Password-reset notice publishing."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from estateshare.core.config import get_settings

LOGGER = logging.getLogger("estateshare.notifications")


class NotificationPublisher(Protocol):
    """Delivers account notices to users through an external channel."""

    def publish_password_reset(self, *, email: str, name: str, reset_url: str) -> None:
        ...


@dataclass
class LoggingNotificationPublisher(NotificationPublisher):
    """Fallback used when no topic is configured; the notice only reaches the log."""

    def publish_password_reset(self, *, email: str, name: str, reset_url: str) -> None:  # noqa: D401
        LOGGER.info("password_reset_notice_skipped", extra={"email": email})


class SnsNotificationPublisher(NotificationPublisher):
    """Publishes notices to an SNS topic consumed by the mailer."""

    def __init__(self, *, topic_arn: str, region: str, source: str) -> None:
        self._topic_arn = topic_arn
        self._source = source
        self._client = boto3.client("sns", region_name=region)

    def publish_password_reset(self, *, email: str, name: str, reset_url: str) -> None:
        payload = {
            "event_id": str(uuid4()),
            "source": self._source,
            "action": "user.password_reset_requested",
            "email": email,
            "name": name,
            "reset_url": reset_url,
        }
        try:
            self._client.publish(
                TopicArn=self._topic_arn,
                Message=json.dumps(payload),
                MessageAttributes={
                    "event_type": {"DataType": "String", "StringValue": "user.password_reset_requested"}
                },
            )
        except (BotoCoreError, ClientError):
            LOGGER.exception("password_reset_notice_failure", extra={"email": email})
            raise
        LOGGER.info(
            "password_reset_notice_published",
            extra={"topic_arn": self._topic_arn, "email": email},
        )


_publisher: Optional[NotificationPublisher] = None


def get_notification_publisher() -> NotificationPublisher:
    """Return cached notification publisher instance."""

    global _publisher
    if _publisher is not None:
        return _publisher

    settings = get_settings()
    if settings.notification_topic_arn:
        _publisher = SnsNotificationPublisher(
            topic_arn=settings.notification_topic_arn,
            region=settings.aws_region,
            source=settings.service_name,
        )
    else:
        _publisher = LoggingNotificationPublisher()
    return _publisher


def set_notification_publisher(publisher: Optional[NotificationPublisher]) -> None:
    global _publisher
    _publisher = publisher
