from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from .issues import IssueCollector
from .registry import ReferenceResolver


ResourceLoader = Callable[[str], bytes]


@dataclass
class ValidationContext:
    document: dict[str, Any]
    issues: IssueCollector
    registry: ReferenceResolver
    is_glb: bool = False
    glb_bin: bytes | None = None
    resource_loader: ResourceLoader | None = None
    resources: list[dict[str, Any]] = field(default_factory=list)
    checked: set[tuple[str, int]] = field(default_factory=set)

    def first_check(self, name: str, index: int) -> bool:
        """True the first time a named per-entity check runs for ``index``; keeps shared accessors from repeating issues."""
        key = (name, index)
        if key in self.checked:
            return False
        self.checked.add(key)
        return True
