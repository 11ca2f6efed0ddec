from __future__ import annotations

import json
import logging
from typing import Any, Union

from .context import ResourceContext
from .executor import RequestExecutor
from .models import PublishConfirmation, SubscriptionConfirmation
from .queues import QueueOperations
from .retry import ABSENT, AbsentType, Operation, RetryController

logger = logging.getLogger(__name__)

MAX_SUBJECT_LENGTH = 100
DEFAULT_SUBJECT = "No Subject"
QUEUE_PROTOCOL = "sqs"

Endpoint = Union[str, ResourceContext]


class TopicOperations:
    def __init__(
        self,
        root: ResourceContext,
        executor: RequestExecutor,
        retry: RetryController,
        *,
        queues: QueueOperations | None = None,
    ) -> None:
        self._root = root
        self._executor = executor
        self._retry = retry
        self._queues = queues

    @property
    def root(self) -> ResourceContext:
        return self._root

    def topic_arn(self, topic: str) -> str:
        _require_topic(topic)
        return self._root.arn(topic)

    def get_topic(self, topic: str) -> str | AbsentType:
        topic_arn = self.topic_arn(topic)
        found = self._retry.run(
            lambda: self._executor.call("GetTopicAttributes", self._root, {"TopicArn": topic_arn}),
            operation=Operation.LOOKUP,
        )
        if found is ABSENT:
            return ABSENT
        return topic_arn

    def create_topic(self, topic: str) -> str:
        _require_topic(topic)
        logger.info("creating topic %s", topic)
        return self._retry.run(
            lambda: self._executor.call_field("CreateTopic", self._root, {"Name": topic}, "TopicArn"),
            operation=Operation.CREATE,
        )

    def delete_topic(self, topic: str) -> None | AbsentType:
        topic_arn = self.topic_arn(topic)
        logger.info("deleting topic %s", topic)
        return self._retry.run(
            lambda: self._discard(self._executor.call("DeleteTopic", self._root, {"TopicArn": topic_arn})),
            operation=Operation.DELETE,
        )

    def publish(self, topic: str, message: str, subject: str = DEFAULT_SUBJECT) -> PublishConfirmation:
        topic_arn = self.topic_arn(topic)
        subject = subject[:MAX_SUBJECT_LENGTH]
        message_id = self._retry.run(
            lambda: self._executor.call_field(
                "Publish",
                self._root,
                {"TopicArn": topic_arn, "Message": message, "Subject": subject},
                "MessageId",
            ),
            operation=Operation.WRITE,
        )
        return PublishConfirmation(message_id=message_id, subject=subject)

    def subscribe(
        self,
        topic: str,
        endpoint: Endpoint,
        protocol: str,
        *,
        raw_delivery: bool = False,
    ) -> SubscriptionConfirmation:
        """Subscribe ``endpoint`` to ``topic``.

        ``endpoint`` may be a resolved queue context, in which case its ARN is
        used. Raw delivery is only enabled when asked for; for a queue endpoint
        it also grants the topic permission to send to that queue.
        """
        topic_arn = self.topic_arn(topic)
        queue = endpoint if isinstance(endpoint, ResourceContext) else None
        if queue is not None:
            queue.require_resolved("Subscribe")
            endpoint_value = queue.arn()
        else:
            endpoint_value = endpoint
        if not endpoint_value or not protocol:
            raise ValueError("endpoint and protocol must be non-empty")

        subscription_arn = self._retry.run(
            lambda: self._executor.call_field(
                "Subscribe",
                self._root,
                {"TopicArn": topic_arn, "Endpoint": endpoint_value, "Protocol": protocol},
                "SubscriptionArn",
            ),
            operation=Operation.WRITE,
        )

        if raw_delivery:
            self._retry.run(
                lambda: self._discard(
                    self._executor.call(
                        "SetSubscriptionAttributes",
                        self._root,
                        {
                            "SubscriptionArn": subscription_arn,
                            "AttributeName": "RawMessageDelivery",
                            "AttributeValue": "true",
                        },
                    )
                ),
                operation=Operation.WRITE,
            )
            if queue is not None:
                self._allow_topic_to_send(topic_arn, queue)

        return SubscriptionConfirmation(
            subscription_arn=subscription_arn,
            topic_arn=topic_arn,
            endpoint=endpoint_value,
            protocol=protocol,
            raw_delivery=raw_delivery,
        )

    def subscribe_queue(
        self,
        topic: str,
        queue: ResourceContext,
        *,
        raw_delivery: bool = False,
    ) -> SubscriptionConfirmation:
        return self.subscribe(topic, queue, QUEUE_PROTOCOL, raw_delivery=raw_delivery)

    def subscribe_email(self, topic: str, address: str) -> SubscriptionConfirmation:
        return self.subscribe(topic, address, "email")

    def _allow_topic_to_send(self, topic_arn: str, queue: ResourceContext) -> None:
        if self._queues is None:
            raise RuntimeError("no queue operations configured to install the delivery policy")
        queue_arn = queue.arn()
        logger.info("granting %s permission to send to %s", topic_arn, queue_arn)
        self._queues.set_queue_attributes(queue, {"Policy": queue_delivery_policy(queue_arn, topic_arn)})

    @staticmethod
    def _discard(_tree: Any) -> None:
        return None


def queue_delivery_policy(queue_arn: str, topic_arn: str) -> str:
    return json.dumps(
        {
            "Version": "2008-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": "SQS:SendMessage",
                    "Resource": queue_arn,
                    "Condition": {"ArnEquals": {"aws:SourceArn": topic_arn}},
                }
            ],
        }
    )


def _require_topic(topic: str) -> None:
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError("topic name must be non-empty string")
