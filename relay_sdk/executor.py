from __future__ import annotations

import hashlib
import logging
from typing import Any, Mapping, Protocol, Sequence

from .context import ResourceContext
from .decoding import decode, find_text
from .exceptions import RelayDecodeError, RelayIntegrityError
from .retry import ABSENT, AbsentType

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "md5"


class Invoker(Protocol):
    def invoke(
        self,
        action: str,
        context: ResourceContext,
        parameters: Mapping[str, str],
    ) -> tuple[bytes, int]: ...


class RequestExecutor:
    """Turns (action, context, parameters) into a decoded response tree."""

    def __init__(self, invoker: Invoker) -> None:
        self._invoker = invoker

    def call(
        self,
        action: str,
        context: ResourceContext,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        query = encode_params(params or {})
        query["Action"] = action
        query["Version"] = context.api_version
        raw_body, status_code = self._invoker.invoke(action, context, query)
        logger.debug("%s %s returned %d (%d bytes)", context.service, action, status_code, len(raw_body))
        return decode(raw_body)

    def call_field(
        self,
        action: str,
        context: ResourceContext,
        params: Mapping[str, Any] | None,
        field: str,
        *,
        optional: bool = False,
    ) -> str | AbsentType:
        tree = self.call(action, context, params)
        value = find_text(tree, field)
        if value is None:
            if optional:
                return ABSENT
            raise RelayDecodeError(f"{action} response does not include {field}")
        return value


def encode_params(params: Mapping[str, Any]) -> dict[str, str]:
    encoded: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            encoded.update(flatten_indexed(key, value))
        else:
            encoded[key] = _stringify(value)
    return encoded


def flatten_indexed(prefix: str, entries: Sequence[Any]) -> dict[str, str]:
    """Expand ``entries`` into ``Prefix.<n>.<Field>`` keys, numbered from 1.

    Scalar entries become ``Prefix.<n>``.
    """
    flattened: dict[str, str] = {}
    for index, entry in enumerate(entries, start=1):
        if isinstance(entry, Mapping):
            for field_name, value in entry.items():
                if value is not None:
                    flattened[f"{prefix}.{index}.{field_name}"] = _stringify(value)
        else:
            flattened[f"{prefix}.{index}"] = _stringify(entry)
    return flattened


def name_value_entries(pairs: Mapping[str, Any]) -> list[dict[str, str]]:
    return [{"Name": name, "Value": _stringify(value)} for name, value in pairs.items()]


def digest(algorithm: str, data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.new(algorithm, data).hexdigest()


def checksum(body: str) -> str:
    return digest(CHECKSUM_ALGORITHM, body)


def verify_checksum(body: str, expected: str | None) -> str:
    actual = checksum(body)
    if expected is None or expected.lower() != actual:
        raise RelayIntegrityError(expected or "<missing>", actual)
    return actual


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
