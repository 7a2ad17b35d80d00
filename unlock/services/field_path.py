"""Dotted field-path lookup over an evaluation context.

Walks dataclass attributes, mapping keys and sequence indexes. Path segments may be
camelCase (as authored in rule JSON) or snake_case. Any missing segment resolves to
None instead of raising.
"""

from collections.abc import Mapping, Sequence
from dataclasses import fields, is_dataclass

from pydantic.alias_generators import to_snake

_MISSING = object()


def _step(current: object, segment: str) -> object:
    if current is None:
        return _MISSING
    if is_dataclass(current) and not isinstance(current, type):
        names: set[str] = {f.name for f in fields(current)}
        for candidate in (segment, to_snake(segment)):
            if candidate in names:
                return getattr(current, candidate)
        return _MISSING
    if isinstance(current, Mapping):
        if segment in current:
            return current[segment]
        snake: str = to_snake(segment)
        return current[snake] if snake in current else _MISSING
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        if segment.isdigit() and int(segment) < len(current):
            return current[int(segment)]
        return _MISSING
    return _MISSING


def resolve_path(root: object, path: str) -> object | None:
    """Return the value at ``path`` (e.g. ``weeklyStats.streakDays``) or None."""
    current: object = root
    for segment in path.split("."):
        current = _step(current, segment)
        if current is _MISSING:
            return None
    return current
