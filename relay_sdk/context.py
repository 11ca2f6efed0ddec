from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

from .exceptions import UnresolvedContextError


@dataclass(frozen=True)
class ResourceContext:
    """Addressing record threaded through every call.

    A context with an empty ``resource_path`` is unresolved: it can address the
    service as a whole (lookup, create, list) but not a particular queue.
    Resolving produces a new context through :meth:`with_resource`.
    """

    service: str
    endpoint: str
    api_version: str
    region: str
    account_id: str
    partition: str = "aws"
    resource_path: str = ""
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extras", MappingProxyType(dict(self.extras)))

    @property
    def is_resolved(self) -> bool:
        return bool(self.resource_path)

    @property
    def url(self) -> str:
        return self.endpoint.rstrip("/") + (self.resource_path or "/")

    @property
    def name(self) -> str:
        self.require_resolved("name")
        return self.resource_path.rstrip("/").rsplit("/", 1)[-1]

    def arn(self, name: str | None = None) -> str:
        resource_name = name if name is not None else self.name
        return f"arn:{self.partition}:{self.service}:{self.region}:{self.account_id}:{resource_name}"

    def with_resource(self, resource_path: str) -> "ResourceContext":
        if not resource_path:
            raise ValueError("resource_path must be non-empty")
        if self.is_resolved:
            raise ValueError(f"context is already resolved to {self.resource_path}")
        return replace(self, resource_path=resource_path)

    def with_extras(self, **extras: Any) -> "ResourceContext":
        merged = dict(self.extras)
        merged.update(extras)
        return replace(self, extras=merged)

    def require_resolved(self, action: str) -> None:
        if not self.is_resolved:
            raise UnresolvedContextError(f"{action} requires a resolved {self.service} context")
