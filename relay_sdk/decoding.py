from __future__ import annotations

from typing import Any, Iterator
from xml.parsers.expat import ExpatError

import xmltodict

from .exceptions import RelayDecodeError


def decode(raw_body: bytes | str) -> dict[str, Any]:
    """Parse an XML body, keeping element text exactly as sent.

    Indentation between elements shows up under ``#text`` keys, which the
    lookup helpers below never match.
    """
    if not raw_body:
        return {}
    try:
        tree = xmltodict.parse(raw_body, strip_whitespace=False)
    except ExpatError as exc:
        raise RelayDecodeError(f"response body is not well-formed XML: {exc}") from exc
    return tree or {}


def extract(tree: Any, *path: str) -> Any | None:
    """Follow ``path`` from the root; ``None`` when any step is missing."""
    node = tree
    for key in path:
        if isinstance(node, list):
            node = node[0] if node else None
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def find(tree: Any, key: str) -> Any | None:
    for value in _iter_values(tree, key):
        return value
    return None


def find_text(tree: Any, key: str) -> str | None:
    """First ``key`` text with surrounding whitespace removed; ``None`` when blank.

    Use :func:`find` for payload text that must stay byte-exact.
    """
    value = find(tree, key)
    if isinstance(value, dict):
        value = value.get("#text")
    if not isinstance(value, str):
        return None
    return value.strip() or None


def find_all(tree: Any, key: str) -> list[Any]:
    found: list[Any] = []
    for value in _iter_values(tree, key):
        if isinstance(value, list):
            found.extend(value)
        else:
            found.append(value)
    return found


def name_value_pairs(tree: Any, key: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for entry in find_all(tree, key):
        if not isinstance(entry, dict):
            continue
        name = entry.get("Name")
        if isinstance(name, str):
            value = entry.get("Value")
            pairs[name] = value if isinstance(value, str) else ""
    return pairs


def _iter_values(node: Any, key: str) -> Iterator[Any]:
    if isinstance(node, dict):
        for child_key, child in node.items():
            if child_key == key:
                yield child
            else:
                yield from _iter_values(child, key)
    elif isinstance(node, list):
        for item in node:
            yield from _iter_values(item, key)
