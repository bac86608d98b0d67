"""Request body sanitising applied before schema validation."""

from __future__ import annotations

from typing import Any

_HTML_ESCAPES = str.maketrans({"<": "&lt;", ">": "&gt;"})


def _unsafe_key(key: Any) -> bool:
    return isinstance(key, str) and (key.startswith("$") or "." in key)


def sanitize_payload(value: Any) -> Any:
    """Strip operator-style keys and neutralise markup in string values.

    Keys starting with ``$`` or containing ``.`` are dropped at every depth;
    ``<`` and ``>`` in strings are HTML-escaped.
    """
    if isinstance(value, dict):
        return {
            k: sanitize_payload(v) for k, v in value.items() if not _unsafe_key(k)
        }
    if isinstance(value, list):
        return [sanitize_payload(v) for v in value]
    if isinstance(value, str):
        return value.translate(_HTML_ESCAPES)
    return value
