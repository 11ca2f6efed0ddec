from __future__ import annotations

from dataclasses import dataclass
import enum
import logging
import threading
import time
from typing import Any, Callable, Generic, TypeVar, Union

from .exceptions import (
    RelayAttemptsExhaustedError,
    RelayCancelledError,
    RelayError,
    RelayServiceError,
    RelayTransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_FOUND_CODES = frozenset(
    {
        "AWS.SimpleQueueService.NonExistentQueue",
        "NonExistentQueue",
        "NotFound",
    }
)
ALREADY_EXISTS_CODES = frozenset({"QueueAlreadyExists"})
DELETED_RECENTLY_CODES = frozenset({"AWS.SimpleQueueService.QueueDeletedRecently"})


class AbsentType:
    """Marker for "the target does not exist"; falsy and distinct from None."""

    _instance: "AbsentType | None" = None

    def __new__(cls) -> "AbsentType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = AbsentType()


class Operation(enum.Enum):
    LOOKUP = "lookup"
    READ = "read"
    DELETE = "delete"
    CREATE = "create"
    RECEIVE = "receive"
    WRITE = "write"


_ABSENT_TOLERANT = frozenset({Operation.LOOKUP, Operation.READ, Operation.DELETE})


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    cooldown_seconds: float = 60.0
    retry_transport_errors: bool = False
    transport_backoff_seconds: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.cooldown_seconds < 0 or self.transport_backoff_seconds < 0:
            raise ValueError("retry delays must be >= 0")


@dataclass(frozen=True)
class Succeed(Generic[T]):
    value: T


@dataclass(frozen=True)
class RetryNow:
    pass


@dataclass(frozen=True)
class RetryAfter:
    delay_seconds: float


@dataclass(frozen=True)
class AbsentVerdict:
    pass


@dataclass(frozen=True)
class Fatal:
    error: BaseException


Verdict = Union[Succeed, RetryNow, RetryAfter, AbsentVerdict, Fatal]
Classifier = Callable[..., Verdict]


def classify_error(
    error: BaseException,
    operation: Operation,
    *,
    policy: RetryPolicy,
    remediate: Callable[[], Any] | None = None,
) -> Verdict:
    """Map one failed attempt to what the caller should do next.

    ``remediate`` is only consulted for an already-exists conflict on create;
    it is expected to remove the conflicting resource. If it raises, the
    conflict cannot be cleared and the remediation error becomes fatal.
    """
    if isinstance(error, RelayTransportError):
        if policy.retry_transport_errors:
            return RetryAfter(policy.transport_backoff_seconds)
        return Fatal(error)

    if not isinstance(error, RelayServiceError):
        return Fatal(error)

    if error.code in NOT_FOUND_CODES and operation in _ABSENT_TOLERANT:
        return AbsentVerdict()

    if operation is Operation.CREATE:
        if error.code in ALREADY_EXISTS_CODES:
            if remediate is None:
                return Fatal(error)
            try:
                remediate()
            except RelayError as exc:
                return Fatal(exc)
            return RetryNow()
        if error.code in DELETED_RECENTLY_CODES:
            return RetryAfter(policy.cooldown_seconds)

    return Fatal(error)


class RetryController:
    """Runs one unit of work under a bounded, verdict-driven retry loop.

    The controller holds configuration only; attempt counters live inside
    :meth:`run`, so one instance may be shared across threads.

    Delayed retries block on ``cancel_event`` when one is given, so setting it
    wakes the wait. An explicit ``sleep`` takes precedence (simulated clocks);
    cancellation is then checked as soon as it returns.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        *,
        classifier: Classifier = classify_error,
        sleep: Callable[[float], None] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._policy = policy
        self._classifier = classifier
        self._sleep = sleep
        self._cancel_event = cancel_event

    def run(
        self,
        work: Callable[[], T],
        *,
        operation: Operation,
        remediate: Callable[[], Any] | None = None,
    ) -> T | AbsentType:
        max_attempts = self._policy.max_attempts
        last_error: BaseException | None = None
        for attempt_idx in range(max_attempts):
            self._check_cancelled()
            verdict, last_error = self._attempt(work, operation=operation, remediate=remediate)

            if isinstance(verdict, Succeed):
                return verdict.value
            if isinstance(verdict, AbsentVerdict):
                logger.debug("%s target absent", operation.value)
                return ABSENT
            if isinstance(verdict, Fatal):
                raise verdict.error
            if attempt_idx >= max_attempts - 1:
                break
            if isinstance(verdict, RetryAfter):
                logger.warning(
                    "%s attempt %d deferred, retrying in %.1fs",
                    operation.value,
                    attempt_idx + 1,
                    verdict.delay_seconds,
                )
                self._wait(verdict.delay_seconds)
            else:
                logger.warning("%s attempt %d failed, retrying now", operation.value, attempt_idx + 1)

        logger.error("%s gave up after %d attempts", operation.value, max_attempts)
        raise RelayAttemptsExhaustedError(max_attempts, last_error)

    def _attempt(
        self,
        work: Callable[[], T],
        *,
        operation: Operation,
        remediate: Callable[[], Any] | None,
    ) -> tuple[Verdict, BaseException | None]:
        try:
            return Succeed(work()), None
        except RelayError as exc:
            return self._classifier(exc, operation, policy=self._policy, remediate=remediate), exc

    def _wait(self, delay_seconds: float) -> None:
        if self._sleep is None and self._cancel_event is not None:
            if self._cancel_event.wait(delay_seconds):
                raise RelayCancelledError("cancelled while waiting to retry")
            return
        (self._sleep or time.sleep)(delay_seconds)
        self._check_cancelled()

    def _check_cancelled(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RelayCancelledError("cancelled before next attempt")
