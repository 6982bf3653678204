from __future__ import annotations

__version__ = "0.3.0"

from .errors import ConfigError, GltfValidatorError, ResourceError
from .glb import encode_glb, parse_glb
from .issues import Issue, IssueCollector, Severity
from .validator import ValidationOptions, ValidationResult, validate_bytes, validate_document

__all__ = [
    "ConfigError",
    "GltfValidatorError",
    "Issue",
    "IssueCollector",
    "ResourceError",
    "Severity",
    "ValidationOptions",
    "ValidationResult",
    "encode_glb",
    "parse_glb",
    "validate_bytes",
    "validate_document",
]
