from __future__ import annotations


class GltfValidatorError(RuntimeError):
    pass


class ConfigError(GltfValidatorError):
    pass


class ResourceError(GltfValidatorError):
    pass
