from __future__ import annotations

import math
from typing import Any, Iterable

from .issues import IssueCollector, format_list, format_value


COMMON_PROPERTIES = frozenset({"name", "extensions", "extras"})


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def pointer_token(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def child_pointer(pointer: str, key: str | int) -> str:
    if isinstance(key, int):
        return f"{pointer}/{key}"
    return f"{pointer}/{pointer_token(key)}"


def check_unexpected(obj: dict[str, Any], allowed: Iterable[str], pointer: str, issues: IssueCollector) -> None:
    allowed_set = frozenset(allowed) | COMMON_PROPERTIES
    for key in obj:
        if key not in allowed_set:
            issues.record("UNEXPECTED_PROPERTY", child_pointer(pointer, key))


def _missing(key: str, pointer: str, issues: IssueCollector, required: bool) -> None:
    if required:
        issues.record("UNDEFINED_PROPERTY", pointer, key)


def get_int(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    minimum: int | None = None,
    maximum: int | None = None,
    default: int | None = None,
) -> int | None:
    if key not in obj:
        _missing(key, pointer, issues, required)
        return default
    value = obj[key]
    if not is_integer(value):
        issues.record("TYPE_MISMATCH", child_pointer(pointer, key), format_value(value), "integer")
        return None
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        issues.record("VALUE_NOT_IN_RANGE", child_pointer(pointer, key), format_value(value))
        return None
    return value


def get_number(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    exclusive_minimum: float | None = None,
    minimum: float | None = None,
    default: float | None = None,
) -> float | None:
    if key not in obj:
        _missing(key, pointer, issues, required)
        return default
    value = obj[key]
    if not is_number(value):
        issues.record("TYPE_MISMATCH", child_pointer(pointer, key), format_value(value), "number")
        return None
    if (exclusive_minimum is not None and value <= exclusive_minimum) or (minimum is not None and value < minimum):
        issues.record("VALUE_NOT_IN_RANGE", child_pointer(pointer, key), format_value(value))
        return None
    return value


def get_bool(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    default: bool | None = None,
) -> bool | None:
    if key not in obj:
        return default
    value = obj[key]
    if not isinstance(value, bool):
        issues.record("TYPE_MISMATCH", child_pointer(pointer, key), format_value(value), "boolean")
        return default
    return value


def get_str(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    choices: Iterable[str] | None = None,
    default: str | None = None,
) -> str | None:
    if key not in obj:
        _missing(key, pointer, issues, required)
        return default
    value = obj[key]
    if not isinstance(value, str):
        issues.record("TYPE_MISMATCH", child_pointer(pointer, key), format_value(value), "string")
        return None
    if choices is not None:
        choices = tuple(choices)
        if value not in choices:
            issues.record("VALUE_NOT_IN_LIST", child_pointer(pointer, key), format_value(value), format_list(choices))
            return None
    return value


def get_object(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
) -> dict[str, Any] | None:
    if key not in obj:
        _missing(key, pointer, issues, required)
        return None
    value = obj[key]
    if not isinstance(value, dict):
        issues.record("TYPE_MISMATCH", child_pointer(pointer, key), format_value(value), "object")
        return None
    return value


def get_array(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    non_empty: bool = False,
    lengths: Iterable[int] | None = None,
) -> list[Any] | None:
    if key not in obj:
        _missing(key, pointer, issues, required)
        return None
    value = obj[key]
    array_pointer = child_pointer(pointer, key)
    if not isinstance(value, list):
        issues.record("TYPE_MISMATCH", array_pointer, format_value(value), "array")
        return None
    if non_empty and not value:
        issues.record("EMPTY_ENTITY", array_pointer)
        return None
    if lengths is not None:
        lengths = tuple(lengths)
        if len(value) not in lengths:
            issues.record("INVALID_ARRAY_LENGTH", array_pointer, len(value), format_list(lengths))
            return None
    return value


def get_number_array(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    lengths: Iterable[int] | None = None,
) -> list[float] | None:
    values = get_array(obj, key, pointer, issues, required=required, lengths=lengths)
    if values is None:
        return None
    ok = True
    for i, value in enumerate(values):
        if not is_number(value):
            issues.record("ARRAY_TYPE_MISMATCH", f"{child_pointer(pointer, key)}/{i}", format_value(value), "number")
            ok = False
    return values if ok else None


def get_object_array(
    obj: dict[str, Any],
    key: str,
    pointer: str,
    issues: IssueCollector,
    *,
    required: bool = False,
    non_empty: bool = False,
) -> list[tuple[int, dict[str, Any]]] | None:
    """Returns ``(index, element)`` pairs for the object elements of an array; other elements are reported."""
    values = get_array(obj, key, pointer, issues, required=required, non_empty=non_empty)
    if values is None:
        return None
    out: list[tuple[int, dict[str, Any]]] = []
    for i, value in enumerate(values):
        if not isinstance(value, dict):
            issues.record("ARRAY_TYPE_MISMATCH", f"{child_pointer(pointer, key)}/{i}", format_value(value), "object")
            continue
        out.append((i, value))
    return out


def vector_length(values: Iterable[float]) -> float:
    return math.sqrt(sum(v * v for v in values))
