"""
Checker plugins.

A plugin is a named checker referenced from the rule set:

    contact:
      email:
        type: required
        plugin: EMail

Plugins are resolved through the CheckerRegistry, never by importing a
module derived from the plugin name. To add one, subclass CheckerPlugin
(or write a plain function with the same signature) and register it:

    from yaml_validation import get_registry

    class PostCode(CheckerPlugin):
        def check(self, value, rule):
            return value.isdigit() and len(value) == 5

    get_registry().register("PostCode", PostCode())
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict


class CheckerPlugin(ABC):
    """
    Abstract base class for named checkers.

    The field validator calls check() with the candidate value and the full
    effective rule, so plugins may read their own extra rule keys.
    """

    @abstractmethod
    def check(self, value: Any, rule: Dict[str, Any]) -> bool:
        """
        Check a single value.

        Args:
            value: Candidate value (never blank; blank values are handled
                by the required/optional policy before plugins run)
            rule: The field's effective rule

        Returns:
            True if the value is acceptable
        """


class EMail(CheckerPlugin):
    """Plausible e-mail address: one @, a non-empty local part, a dotted domain."""

    PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z0-9-]{2,}$")

    def check(self, value, rule):
        return bool(self.PATTERN.match(str(value)))


class Digits(CheckerPlugin):
    """Only decimal digits. `digits` on the rule optionally pins the exact count."""

    def check(self, value, rule):
        text = str(value)
        if not text.isdigit():
            return False
        expected = rule.get("digits")
        return expected is None or len(text) == int(expected)


BUNDLED_PLUGINS = {
    "EMail": EMail,
    "Digits": Digits,
}
