"""
yaml-validation: Form field validation configured with YAML files

This library provides:
- Rule sets in YAML: section (form) -> field -> rule
- Required/optional classification with runtime promote/demote
- Built-in criteria: min, max, regex, length, enum
- Dependent fields whose rule switches on another field's value
- Named plugin checkers through an explicit registry
- Restricted `sub` expressions, off unless allow_subs=True

Example:
    from yaml_validation import YAMLValidator

    validator = YAMLValidator("rules.yml")
    errors = validator.validate("step1", form_data)
"""

from .api import LoadResult, YAMLValidator
from .checkers import CheckerRegistry, get_registry, reset_registry
from .errors import (
    ConfigError,
    ConfigNotFound,
    ConfigParseError,
    ExpressionError,
    FatalValidationError,
    PluginResolutionError,
    UnknownSectionError,
    UnsafeEvalDisabled,
    YAMLValidationError,
)
from .plugins import CheckerPlugin

__version__ = "0.1.0"
__all__ = [
    "YAMLValidator",
    "LoadResult",
    "CheckerRegistry",
    "CheckerPlugin",
    "get_registry",
    "reset_registry",
    "YAMLValidationError",
    "ConfigError",
    "ConfigNotFound",
    "ConfigParseError",
    "UnknownSectionError",
    "FatalValidationError",
    "PluginResolutionError",
    "UnsafeEvalDisabled",
    "ExpressionError",
]
