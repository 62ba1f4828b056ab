import logging
from typing import Any, Dict, Iterable, List, Optional

from . import rule_resolver
from .checkers import CheckerRegistry
from .field_index import FieldIndex
from .rule_executor import RuleExecutor

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Core validation logic over one field index, independent of transport"""

    def __init__(self, index: FieldIndex, registry: CheckerRegistry, allow_subs: bool = False):
        """
        Initialize validation engine.

        Args:
            index: Field index built from the rule set
            registry: Plugin checkers
            allow_subs: Whether `sub` expressions may be evaluated
        """
        self.index = index
        self.executor = RuleExecutor(index, registry, allow_subs=allow_subs)

    def check(self, name: str, value: Any, rule: Optional[Dict[str, Any]] = None) -> bool:
        return self.executor.check(name, value, rule)

    def check_list(self, name: str, values: List[Any]) -> List[bool]:
        """
        Check several candidate values for one field.

        Raises:
            TypeError: If values is not a list or tuple
        """
        if not isinstance(values, (list, tuple)):
            raise TypeError(f"values must be a list, got {type(values).__name__}")
        return [self.executor.check(name, value) for value in values]

    def validate(self, section: str, values: Dict[str, Any]) -> Dict[str, str]:
        """
        Validate a whole form.

        Every field registered under the section is resolved (dependencies,
        case overrides) and checked. Failing fields are reported with their
        configured message; passing and skipped fields are absent.

        Args:
            section: Section (form) name
            values: Submitted form, field name -> value

        Returns:
            Dict mapping failing field name to its message; empty on success

        Raises:
            UnknownSectionError: If the section is not in the rule set
            FatalValidationError: On plugin or sub misconfiguration
        """
        errors = {}
        for name in self.index.fieldnames(section):
            resolution = rule_resolver.resolve(name, self.index, values)

            if resolution.kind == rule_resolver.SKIP:
                continue

            if resolution.kind == rule_resolver.MISSING_DEPENDENCY:
                logger.debug(f"Field {name} depends on a blank field")
                errors[name] = self.message(name)
                continue

            if not self.executor.check(name, values.get(name), resolution.rule):
                errors[name] = self.message(name)

        logger.debug(f"Validated section {section}: {len(errors)} failing fields")
        return errors

    def fieldnames(self, section: Optional[str] = None,
                   exclude: Optional[Iterable[str]] = None) -> List[str]:
        return self.index.fieldnames(section, exclude=exclude)

    def message(self, name: str) -> str:
        """Configured failure message for a field, or an empty string."""
        rule = self.index.lookup(name) or {}
        return rule.get("message") or ""
