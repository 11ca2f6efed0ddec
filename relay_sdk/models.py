from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    """One delivery of a queue message; only valid until it is deleted."""

    body: str
    receipt_handle: str
    checksum: str
    message_id: str | None = None


@dataclass(frozen=True)
class SendConfirmation:
    checksum: str
    message_id: str | None = None
    entry_id: str | None = None


@dataclass(frozen=True)
class PublishConfirmation:
    message_id: str
    subject: str


@dataclass(frozen=True)
class SubscriptionConfirmation:
    subscription_arn: str
    topic_arn: str
    endpoint: str
    protocol: str
    raw_delivery: bool = False
