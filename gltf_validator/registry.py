from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .constants import ARRAY_KINDS
from .issues import IssueCollector, format_value
from .values import is_integer


log = logging.getLogger(__name__)


@dataclass
class Entry:
    kind: str
    index: int
    value: Any
    valid: bool = True
    info: Any = None

    @property
    def pointer(self) -> str:
        return f"/{self.kind}/{self.index}"

    @property
    def obj(self) -> dict[str, Any]:
        return self.value if isinstance(self.value, dict) else {}


class ReferenceResolver:
    """Index of every top-level glTF array; the only place integer references are dereferenced."""

    def __init__(self, document: dict[str, Any], issues: IssueCollector) -> None:
        self.issues = issues
        self._entries: dict[str, list[Entry]] = {}
        for kind in ARRAY_KINDS:
            self._entries[kind] = self._index(document, kind)

    def _index(self, document: dict[str, Any], kind: str) -> list[Entry]:
        if kind not in document:
            return []
        items = document[kind]
        if not isinstance(items, list):
            self.issues.record("TYPE_MISMATCH", f"/{kind}", format_value(items), "array")
            return []
        if not items:
            self.issues.record("EMPTY_ENTITY", f"/{kind}")
            return []

        entries: list[Entry] = []
        for index, value in enumerate(items):
            entry = Entry(kind, index, value)
            if not isinstance(value, dict):
                self.issues.record("ARRAY_TYPE_MISMATCH", entry.pointer, format_value(value), "object")
                entry.valid = False
            entries.append(entry)
        log.debug("indexed %d %s", len(entries), kind)
        return entries

    def entries(self, kind: str) -> list[Entry]:
        return self._entries[kind]

    def length(self, kind: str) -> int:
        return len(self._entries[kind])

    def resolve(self, kind: str, value: Any, pointer: str) -> Entry | None:
        if not is_integer(value):
            self.issues.record("TYPE_MISMATCH", pointer, format_value(value), "integer")
            return None
        entries = self._entries[kind]
        if not 0 <= value < len(entries):
            self.issues.record("UNRESOLVED_REFERENCE", pointer, value)
            return None
        return entries[value]

    def resolve_property(
        self,
        obj: dict[str, Any],
        key: str,
        kind: str,
        pointer: str,
        *,
        required: bool = False,
    ) -> Entry | None:
        if key not in obj:
            if required:
                self.issues.record("UNDEFINED_PROPERTY", pointer, key)
            return None
        return self.resolve(kind, obj[key], f"{pointer}/{key}")

    def resolve_in(self, items: list[Any], value: Any, pointer: str) -> int | None:
        """Resolves an index into an array nested inside another object (e.g. an animation's samplers)."""
        if not is_integer(value):
            self.issues.record("TYPE_MISMATCH", pointer, format_value(value), "integer")
            return None
        if not 0 <= value < len(items):
            self.issues.record("UNRESOLVED_REFERENCE", pointer, value)
            return None
        return value

    def lookup(self, kind: str, value: Any) -> Entry | None:
        if not is_integer(value):
            return None
        entries = self._entries[kind]
        if not 0 <= value < len(entries):
            return None
        return entries[value]

    def invalidate(self, kind: str, index: int) -> None:
        self._entries[kind][index].valid = False

    def is_valid(self, kind: str, value: Any) -> bool:
        entry = self.lookup(kind, value)
        return entry is not None and entry.valid
