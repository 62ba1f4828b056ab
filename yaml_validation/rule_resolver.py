"""
Rule Resolver - effective rule for one field of a submitted form.

A field may depend on another field of the same form and swap its rule
according to that field's value:

    shipping:
      country:
        type: required
      zip:
        depends_on: country
        message: invalid zip code
        case:
          DE:
            regex: ^\\d{5}$
          NL:
            regex: ^\\d{4}\\s?[A-Z]{2}$

Resolution yields one of three outcomes:

- SKIP: no rule for the field, or `no_validate` is set
- MISSING_DEPENDENCY: the depended-on field is blank, the field fails
- CHECK: check the value against `Resolution.rule`

`case` is a plain lookup keyed by the depended-on value. When no case
matches, the field's own rule applies unchanged.
"""

from typing import Any, Dict, NamedTuple, Optional

from .field_index import OPTIONAL, FieldIndex
from .rule_executor import is_blank

SKIP = "skip"
MISSING_DEPENDENCY = "missing_dependency"
CHECK = "check"


class Resolution(NamedTuple):
    kind: str
    rule: Optional[Dict[str, Any]] = None


def find_case(cases: Dict[Any, Any], key: Any) -> Optional[Dict[str, Any]]:
    """
    Look up a case override by the depended-on value.

    Keys and value are compared as text, the way `enum` compares, so the
    form input "1" selects the case keyed `1` and the boolean True never
    stands in for 1.
    """
    if not cases:
        return None
    text = str(key)
    for case_key, override in cases.items():
        if str(case_key) == text:
            return override
    return None


def resolve(name: str, index: FieldIndex, values: Dict[str, Any]) -> Resolution:
    """
    Resolve the effective rule for a field.

    Args:
        name: Field name
        index: Field index holding the field's configured rule
        values: The whole submitted form, field name -> value

    Returns:
        Resolution; for CHECK the rule is a copy with `type` set
    """
    rule = index.lookup(name)
    if rule is None or rule.get("no_validate"):
        return Resolution(SKIP)

    depends_on = rule.get("depends_on")
    if depends_on:
        depended_value = values.get(depends_on)
        if is_blank(depended_value):
            return Resolution(MISSING_DEPENDENCY)

        override = find_case(rule.get("case"), depended_value)
        if override is not None:
            effective = dict(override)
            effective.setdefault("type", OPTIONAL)
            return Resolution(CHECK, effective)

    effective = dict(rule)
    effective.setdefault("type", OPTIONAL)
    return Resolution(CHECK, effective)
