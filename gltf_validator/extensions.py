from __future__ import annotations

import logging
from typing import Any, Iterator

from .context import ValidationContext
from .issues import format_value
from .values import child_pointer, get_array


log = logging.getLogger(__name__)


def find_extension_objects(document: dict[str, Any]) -> Iterator[tuple[str, str]]:
    """Yields ``(extension name, pointer)`` for every ``extensions`` entry in the document, in document order."""
    stack: list[tuple[str, Any]] = [("", document)]
    while stack:
        pointer, value = stack.pop()
        if isinstance(value, dict):
            extensions = value.get("extensions")
            if isinstance(extensions, dict):
                for name in extensions:
                    yield name, child_pointer(f"{pointer}/extensions", name)
            children = [(child_pointer(pointer, k), v) for k, v in value.items() if k != "extras"]
        elif isinstance(value, list):
            children = [(f"{pointer}/{i}", v) for i, v in enumerate(value)]
        else:
            continue
        stack.extend(reversed(children))


def _declared_names(ctx: ValidationContext, key: str) -> list[str]:
    names = get_array(ctx.document, key, "", ctx.issues, non_empty=True)
    out: list[str] = []
    for i, name in enumerate(names or []):
        pointer = f"/{key}/{i}"
        if not isinstance(name, str):
            ctx.issues.record("ARRAY_TYPE_MISMATCH", pointer, format_value(name), "string")
        elif name in out:
            ctx.issues.record("DUPLICATE_ELEMENTS", pointer)
        else:
            out.append(name)
    return out


def validate_extensions(ctx: ValidationContext) -> None:
    used = _declared_names(ctx, "extensionsUsed")
    required = _declared_names(ctx, "extensionsRequired")
    for name in required:
        if name not in used:
            index = ctx.document["extensionsRequired"].index(name)
            ctx.issues.record("UNUSED_EXTENSION_REQUIRED", f"/extensionsRequired/{index}", format_value(name))

    found: set[str] = set()
    for name, pointer in find_extension_objects(ctx.document):
        found.add(name)
        if name not in used:
            ctx.issues.record("UNDECLARED_EXTENSION", pointer)

    for name in used:
        if name not in found:
            index = ctx.document["extensionsUsed"].index(name)
            ctx.issues.record("UNUSED_EXTENSION", f"/extensionsUsed/{index}", format_value(name))
    log.debug("extensions used=%s required=%s found=%s", used, required, sorted(found))
