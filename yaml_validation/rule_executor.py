import logging
from typing import Any, Dict, Optional

from .checkers import CRITERIA, CheckContext, CheckerRegistry
from .field_index import REQUIRED, FieldIndex

logger = logging.getLogger(__name__)


def is_blank(value: Any) -> bool:
    """Missing (None) or the empty string. 0, False and [] are values."""
    return value is None or (isinstance(value, str) and value == "")


class RuleExecutor:
    """Checks one value against one field rule, criterion by criterion."""

    def __init__(self, index: FieldIndex, registry: CheckerRegistry, allow_subs: bool = False):
        """
        Initialize rule executor.

        Args:
            index: Field index used when no explicit rule is passed
            registry: Plugin checkers for the `plugin` criterion
            allow_subs: Whether `sub` expressions may be evaluated
        """
        self.index = index
        self.registry = registry
        self.allow_subs = allow_subs

    def check(self, name: str, value: Any, rule: Optional[Dict[str, Any]] = None) -> bool:
        """
        Check a value for a field.

        With an explicit rule, its `type` decides whether the field is
        required (absent type means optional). Without one, the rule and
        required-ness come from the field index.

        Args:
            name: Field name (need not be in the index)
            value: Candidate value
            rule: Effective rule overriding the index

        Returns:
            True if the value passes

        Raises:
            PluginResolutionError: If a `plugin` criterion cannot be resolved
            UnsafeEvalDisabled: If a `sub` criterion is used while disabled
            ExpressionError: If a `sub` expression is malformed
        """
        if rule is not None:
            required = rule.get("type") == REQUIRED
        else:
            rule = self.index.lookup(name)
            if rule is None:
                logger.debug(f"No rule for field {name}, accepting value")
                return True
            required = self.index.is_required(name)

        if is_blank(value):
            return not required

        context = CheckContext(self.registry, allow_subs=self.allow_subs, field=name)
        for key, bound in rule.items():
            criterion = CRITERIA.get(key)
            if criterion is None:
                continue
            if not criterion(value, bound, rule, context):
                logger.debug(f"Field {name} failed {key} criterion")
                return False

        return True
