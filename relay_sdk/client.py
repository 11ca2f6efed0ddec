from __future__ import annotations

from dataclasses import dataclass, field
import threading
from typing import Any, Callable

import httpx

from .context import ResourceContext
from .executor import RequestExecutor
from .queues import QueueOperations
from .retry import RetryController, RetryPolicy
from .topics import TopicOperations
from .transport import HttpInvoker

QUEUE_SERVICE = "sqs"
TOPIC_SERVICE = "sns"


@dataclass(frozen=True)
class RelayClientConfig:
    queue_endpoint: str
    topic_endpoint: str
    region: str
    account_id: str
    partition: str = "aws"
    queue_api_version: str = "2012-11-05"
    topic_api_version: str = "2010-03-31"
    timeout_seconds: float = 15.0
    auth: httpx.Auth | None = None
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    cancel_event: threading.Event | None = None
    # Injected clock for delayed retries; when set it replaces the blocking
    # wait on cancel_event, and cancellation is checked after each call.
    sleep: Callable[[float], None] | None = None

    def queue_context(self) -> ResourceContext:
        return ResourceContext(
            service=QUEUE_SERVICE,
            endpoint=self.queue_endpoint,
            api_version=self.queue_api_version,
            region=self.region,
            account_id=self.account_id,
            partition=self.partition,
        )

    def topic_context(self) -> ResourceContext:
        return ResourceContext(
            service=TOPIC_SERVICE,
            endpoint=self.topic_endpoint,
            api_version=self.topic_api_version,
            region=self.region,
            account_id=self.account_id,
            partition=self.partition,
        )


class RelayClient:
    def __init__(self, config: RelayClientConfig, *, http_client: httpx.Client | None = None) -> None:
        self._config = config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=self._config.timeout_seconds,
            auth=self._config.auth,
        )
        self._executor = RequestExecutor(HttpInvoker(self._http))
        self._retry = RetryController(
            self._config.retry_policy,
            sleep=self._config.sleep,
            cancel_event=self._config.cancel_event,
        )
        self.queues = QueueOperations(self._config.queue_context(), self._executor, self._retry)
        self.topics = TopicOperations(
            self._config.topic_context(),
            self._executor,
            self._retry,
            queues=self.queues,
        )

    @property
    def config(self) -> RelayClientConfig:
        return self._config

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def __enter__(self) -> "RelayClient":
        return self

    def __exit__(self, exc_type: Any, exc: Any, traceback: Any) -> None:
        self.close()
