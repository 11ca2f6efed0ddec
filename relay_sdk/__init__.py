from .client import RelayClient, RelayClientConfig
from .context import ResourceContext
from .exceptions import (
    RelayAttemptsExhaustedError,
    RelayCancelledError,
    RelayDecodeError,
    RelayError,
    RelayIntegrityError,
    RelayServiceError,
    RelayTransportError,
    UnresolvedContextError,
)
from .models import Message, PublishConfirmation, SendConfirmation, SubscriptionConfirmation
from .retry import ABSENT, Operation, RetryController, RetryPolicy

__all__ = [
    "ABSENT",
    "Message",
    "Operation",
    "PublishConfirmation",
    "RelayAttemptsExhaustedError",
    "RelayCancelledError",
    "RelayClient",
    "RelayClientConfig",
    "RelayDecodeError",
    "RelayError",
    "RelayIntegrityError",
    "RelayServiceError",
    "RelayTransportError",
    "ResourceContext",
    "RetryController",
    "RetryPolicy",
    "SendConfirmation",
    "SubscriptionConfirmation",
    "UnresolvedContextError",
]
