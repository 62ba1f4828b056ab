"""
Checker Registry - criterion predicates and named plugins.

Each criterion key on a field rule maps to one predicate with the signature
`(value, bound, rule, context) -> bool`:

| key      | bound                         | passes when                         |
|----------|-------------------------------|-------------------------------------|
| min      | number                        | value >= bound                      |
| max      | number                        | value <= bound                      |
| regex    | pattern string                | re.search(bound, value)             |
| length   | "min,max" or single number    | min <= len <= max, or len > number  |
| enum     | list of allowed values        | str(value) equals one of them       |
| plugin   | registered plugin name        | plugin.check(value, rule)           |
| sub      | restricted expression         | expression is true (allow_subs)     |

The single-number `length` form is an exclusive minimum while the comma form
is inclusive on both ends. Existing rule sets depend on this, keep it.
"""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from . import expressions
from .errors import PluginResolutionError, UnsafeEvalDisabled
from .plugins import BUNDLED_PLUGINS

logger = logging.getLogger(__name__)

LENGTH_RANGE = re.compile(r"\s*(\d+)?\s*,\s*(\d+)?")


class CheckContext:
    """What a criterion may need beyond the value: plugins and the sub switch."""

    def __init__(self, registry: "CheckerRegistry", allow_subs: bool = False, field=None):
        self.registry = registry
        self.allow_subs = allow_subs
        self.field = field


def _as_number(value) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def _as_bound(bound, key) -> Decimal:
    number = _as_number(bound)
    if number is None or number.is_nan():
        raise ValueError(f"{key} bound must be a number, got {bound!r}")
    return number


def check_min(value, bound, rule=None, context=None) -> bool:
    limit = _as_bound(bound, "min")
    number = _as_number(value)
    return number is not None and not number.is_nan() and number >= limit


def check_max(value, bound, rule=None, context=None) -> bool:
    limit = _as_bound(bound, "max")
    number = _as_number(value)
    return number is not None and not number.is_nan() and number <= limit


def check_regex(value, pattern, rule=None, context=None) -> bool:
    return re.search(str(pattern), str(value)) is not None


def check_length(value, bound, rule=None, context=None) -> bool:
    length = len(str(value))
    bound = str(bound)

    if "," in bound:
        low, high = LENGTH_RANGE.search(bound).groups()
        if low is not None and length < int(low):
            return False
        if high is not None and length > int(high):
            return False
        return True

    try:
        return length > int(bound)
    except ValueError:
        raise ValueError(f"length bound must be a number or \"min,max\", got {bound!r}") from None


def check_enum(value, allowed, rule=None, context=None) -> bool:
    # text comparison: form input is text and 1 must not match true
    text = str(value)
    return any(text == str(item) for item in allowed)


def check_plugin(value, name, rule=None, context=None) -> bool:
    plugin = context.registry.get(name)
    return bool(plugin(value, rule))


def check_sub(value, expression, rule=None, context=None) -> bool:
    if not context.allow_subs:
        raise UnsafeEvalDisabled(field=context.field)
    return expressions.evaluate(expression, value)


CRITERIA: Dict[str, Callable[..., bool]] = {
    "min": check_min,
    "max": check_max,
    "regex": check_regex,
    "length": check_length,
    "enum": check_enum,
    "plugin": check_plugin,
    "sub": check_sub,
}


class CheckerRegistry:
    """
    Named plugin checkers.

    Entries are either callables `(value, rule) -> bool` or objects with a
    `check(value, rule)` method. Both are stored as callables.
    """

    def __init__(self, include_bundled: bool = True):
        self._checkers: Dict[str, Callable[[Any, Dict[str, Any]], bool]] = {}
        if include_bundled:
            for name, plugin_class in BUNDLED_PLUGINS.items():
                self.register(name, plugin_class())

    def register(self, name: str, checker) -> None:
        """
        Register (or replace) a named checker.

        Raises:
            PluginResolutionError: If checker exposes no check entry point
        """
        if isinstance(checker, type):
            checker = checker()
        check = getattr(checker, "check", None)
        if callable(check):
            self._checkers[name] = check
        elif callable(checker):
            self._checkers[name] = checker
        else:
            raise PluginResolutionError(name, "no check entry point")
        logger.debug(f"Registered checker plugin {name}")

    def unregister(self, name: str) -> None:
        self._checkers.pop(name, None)

    def get(self, name: str) -> Callable[[Any, Dict[str, Any]], bool]:
        """
        Resolve a checker by name.

        Raises:
            PluginResolutionError: If nothing is registered under name
        """
        try:
            return self._checkers[name]
        except KeyError:
            raise PluginResolutionError(name) from None

    def names(self) -> List[str]:
        return sorted(self._checkers)

    def __contains__(self, name) -> bool:
        return name in self._checkers


_registry: Optional[CheckerRegistry] = None


def get_registry() -> CheckerRegistry:
    """Get the process default registry, creating it with the bundled plugins."""
    global _registry
    if _registry is None:
        _registry = CheckerRegistry()
    return _registry


def reset_registry() -> None:
    """Drop the process default registry (for tests)."""
    global _registry
    _registry = None
