from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from .context import ResourceContext
from .decoding import find, find_all, find_text, name_value_pairs
from .exceptions import RelayDecodeError, RelayServiceError
from .executor import RequestExecutor, checksum, name_value_entries, verify_checksum
from .models import Message, SendConfirmation
from .retry import ABSENT, AbsentType, Operation, RetryController

logger = logging.getLogger(__name__)

VISIBLE_COUNT_ATTRIBUTE = "ApproximateNumberOfMessages"
IN_FLIGHT_COUNT_ATTRIBUTE = "ApproximateNumberOfMessagesNotVisible"
BATCH_ENTRY_PREFIX = "SendMessageBatchRequestEntry"


class QueueOperations:
    def __init__(self, root: ResourceContext, executor: RequestExecutor, retry: RetryController) -> None:
        if root.is_resolved:
            raise ValueError("queue operations need an unresolved service context")
        self._root = root
        self._executor = executor
        self._retry = retry

    @property
    def root(self) -> ResourceContext:
        return self._root

    def get_queue(self, name: str) -> ResourceContext | AbsentType:
        """Look up ``name`` and return a context bound to its path, or ``ABSENT``."""
        _require_name(name)
        url = self._retry.run(
            lambda: self._executor.call_field("GetQueueUrl", self._root, {"QueueName": name}, "QueueUrl"),
            operation=Operation.LOOKUP,
        )
        if url is ABSENT:
            return ABSENT
        return self._root.with_resource(httpx.URL(url).path)

    def create_queue(self, name: str, **options: Any) -> ResourceContext:
        """Create ``name`` with queue attributes such as ``VisibilityTimeout``.

        A conflicting queue of the same name is deleted and creation retried.
        A recently deleted name is retried after the service cooldown, so this
        call may block for a minute or more.
        """
        _require_name(name)
        params: dict[str, Any] = {"QueueName": name}
        if options:
            params["Attribute"] = name_value_entries(options)

        logger.info("creating queue %s", name)
        url = self._retry.run(
            lambda: self._executor.call_field("CreateQueue", self._root, params, "QueueUrl"),
            operation=Operation.CREATE,
            remediate=lambda: self._delete_by_name(name),
        )
        return self._root.with_resource(httpx.URL(url).path)

    def delete_queue(self, queue: ResourceContext) -> None | AbsentType:
        queue.require_resolved("DeleteQueue")
        logger.info("deleting queue %s", queue.resource_path)
        return self._retry.run(
            lambda: self._discard(self._executor.call("DeleteQueue", queue)),
            operation=Operation.DELETE,
        )

    def send_message(self, queue: ResourceContext, body: str) -> SendConfirmation:
        queue.require_resolved("SendMessage")
        body_checksum = checksum(body)

        def send() -> SendConfirmation:
            tree = self._executor.call(
                "SendMessage",
                queue,
                {"MessageBody": body, "MD5OfMessageBody": body_checksum},
            )
            returned = find_text(tree, "MD5OfMessageBody")
            if returned is not None:
                verify_checksum(body, returned)
            return SendConfirmation(checksum=body_checksum, message_id=find_text(tree, "MessageId"))

        return self._retry.run(send, operation=Operation.WRITE)

    def send_message_batch(self, queue: ResourceContext, bodies: Sequence[str]) -> list[SendConfirmation]:
        """Send ``bodies`` in one request; confirmations come back in input order."""
        queue.require_resolved("SendMessageBatch")
        if isinstance(bodies, str):
            raise ValueError("bodies must be a sequence of strings, not a string")
        if not bodies:
            raise ValueError("bodies must be non-empty")

        entries = [{"Id": str(index), "MessageBody": body} for index, body in enumerate(bodies, start=1)]
        by_id = {entry["Id"]: entry["MessageBody"] for entry in entries}

        def send() -> list[SendConfirmation]:
            tree = self._executor.call("SendMessageBatch", queue, {BATCH_ENTRY_PREFIX: entries})
            failures = [item for item in find_all(tree, "BatchResultErrorEntry") if isinstance(item, dict)]
            if failures:
                first = failures[0]
                raise RelayServiceError(
                    200,
                    str(first.get("Code") or "BatchEntryFailed"),
                    f"entry {first.get('Id')}: {first.get('Message') or 'send failed'}",
                    body=tree,
                )

            confirmed: dict[str, SendConfirmation] = {}
            for item in find_all(tree, "SendMessageBatchResultEntry"):
                if not isinstance(item, dict) or item.get("Id") not in by_id:
                    continue
                entry_id = item["Id"]
                body_checksum = verify_checksum(by_id[entry_id], item.get("MD5OfMessageBody"))
                confirmed[entry_id] = SendConfirmation(
                    checksum=body_checksum,
                    message_id=item.get("MessageId"),
                    entry_id=entry_id,
                )
            missing = [entry_id for entry_id in by_id if entry_id not in confirmed]
            if missing:
                raise RelayDecodeError(f"SendMessageBatch response is missing entries {', '.join(missing)}")
            return [confirmed[entry["Id"]] for entry in entries]

        return self._retry.run(send, operation=Operation.WRITE)

    def receive_message(self, queue: ResourceContext) -> Message | AbsentType:
        queue.require_resolved("ReceiveMessage")

        def receive() -> Message | AbsentType:
            tree = self._executor.call("ReceiveMessage", queue, {"MaxNumberOfMessages": "1"})
            handle = find_text(tree, "ReceiptHandle")
            if handle is None:
                return ABSENT
            body = find(tree, "Body")
            if not isinstance(body, str):
                body = ""
            body_checksum = verify_checksum(body, find_text(tree, "MD5OfBody"))
            return Message(
                body=body,
                receipt_handle=handle,
                checksum=body_checksum,
                message_id=find_text(tree, "MessageId"),
            )

        return self._retry.run(receive, operation=Operation.RECEIVE)

    def delete_message(self, queue: ResourceContext, message: Message) -> None:
        queue.require_resolved("DeleteMessage")
        if not message.receipt_handle:
            raise ValueError("message has no receipt handle")
        self._retry.run(
            lambda: self._discard(
                self._executor.call("DeleteMessage", queue, {"ReceiptHandle": message.receipt_handle})
            ),
            operation=Operation.WRITE,
        )

    def drain(self, queue: ResourceContext) -> int:
        """Receive and delete until the queue reports no message; returns the number deleted."""
        deleted = 0
        while True:
            message = self.receive_message(queue)
            if message is ABSENT:
                return deleted
            self.delete_message(queue, message)
            deleted += 1

    def get_queue_attributes(self, queue: ResourceContext) -> dict[str, str] | AbsentType:
        queue.require_resolved("GetQueueAttributes")
        return self._retry.run(
            lambda: name_value_pairs(
                self._executor.call("GetQueueAttributes", queue, {"AttributeName": ["All"]}),
                "Attribute",
            ),
            operation=Operation.READ,
        )

    def set_queue_attributes(self, queue: ResourceContext, attributes: Mapping[str, Any]) -> None:
        queue.require_resolved("SetQueueAttributes")
        if not attributes:
            raise ValueError("attributes must be non-empty")
        self._retry.run(
            lambda: self._discard(
                self._executor.call("SetQueueAttributes", queue, {"Attribute": name_value_entries(attributes)})
            ),
            operation=Operation.WRITE,
        )

    def count(self, queue: ResourceContext) -> int:
        return self._int_attribute(queue, VISIBLE_COUNT_ATTRIBUTE)

    def in_flight_count(self, queue: ResourceContext) -> int:
        return self._int_attribute(queue, IN_FLIGHT_COUNT_ATTRIBUTE)

    def queue_name(self, queue: ResourceContext) -> str:
        return queue.name

    def queue_arn(self, queue: ResourceContext) -> str:
        return queue.arn()

    def _int_attribute(self, queue: ResourceContext, attribute: str) -> int:
        attributes = self.get_queue_attributes(queue)
        if attributes is ABSENT:
            raise RelayDecodeError(f"queue {queue.resource_path} does not exist; no {attribute}")
        raw = attributes.get(attribute)
        if raw is None:
            raise RelayDecodeError(f"queue attributes do not include {attribute}")
        try:
            return int(raw)
        except ValueError:
            raise RelayDecodeError(f"queue attribute {attribute} is not an integer: {raw!r}") from None

    def _delete_by_name(self, name: str) -> None:
        existing = self.get_queue(name)
        if existing is not ABSENT:
            self.delete_queue(existing)

    @staticmethod
    def _discard(_tree: Any) -> None:
        return None


def _require_name(name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValueError("queue name must be non-empty string")
