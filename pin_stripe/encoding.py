"""Stripe parameter encoding.

Stripe takes form-encoded bodies and query strings with bracket notation for
nesting::

    {"metadata": {"order": "42"}, "expand": ["customer"]}
    -> metadata[order]=42&expand[0]=customer

Values pass through verbatim otherwise: cursor fields such as ``limit`` or
``starting_after`` are not interpreted here.
"""

from __future__ import annotations

from typing import Any, Mapping

__all__ = ["flatten_params"]


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flatten(prefix: str, value: Any, out: list[tuple[str, str]]) -> None:
    if value is None:
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}[{key}]", item, out)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _flatten(f"{prefix}[{index}]", item, out)
    else:
        out.append((prefix, _scalar(value)))


def flatten_params(params: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Flatten nested params into ordered ``(key, value)`` pairs.

    ``None`` values are dropped; send ``""`` to clear a field upstream.
    """
    out: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        _flatten(str(key), value, out)
    return out
