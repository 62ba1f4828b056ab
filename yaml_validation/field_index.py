"""
Field Index - required/optional classification of every field in a rule set.

Built once from the parsed rule set. Each field name lives in exactly one of
two buckets:

- required: some section declares it with `type: required`
- optional: everything else

A field name may appear in several sections. Classification is global:

1. `type: required` in any section wins, and evicts an optional entry
   registered by an earlier section.
2. Otherwise the first section to define the field supplies its rule.

Independently, each section keeps its field names in document order, so
validating a section is deterministic.

After ingestion, promote() and demote() are the only mutations.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import UnknownSectionError

logger = logging.getLogger(__name__)

REQUIRED = "required"
OPTIONAL = "optional"


class FieldIndex:
    """Two disjoint buckets of field rules plus per-section field order."""

    def __init__(self):
        self.required: Dict[str, Dict[str, Any]] = {}
        self.optional: Dict[str, Dict[str, Any]] = {}
        self.sections: Dict[str, List[str]] = {}

    @classmethod
    def from_config(cls, document: Dict[str, Dict[str, Dict[str, Any]]]) -> "FieldIndex":
        """
        Build the index from a parsed rule set.

        Args:
            document: section -> field -> rule, as returned by ConfigLoader

        Returns:
            Populated FieldIndex
        """
        index = cls()
        for section, fields in document.items():
            names = index.sections.setdefault(section, [])
            for name, rule in fields.items():
                index._classify(name, rule)
                names.append(name)

        logger.debug(
            f"Indexed {len(index.required)} required and {len(index.optional)} "
            f"optional fields across {len(index.sections)} sections"
        )
        return index

    def _classify(self, name: str, rule: Dict[str, Any]) -> None:
        if rule.get("type") == REQUIRED:
            self.required[name] = rule
            self.optional.pop(name, None)
        elif name not in self.required and name not in self.optional:
            self.optional[name] = rule

    def lookup(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the field's rule, required bucket first, or None."""
        if name in self.required:
            return self.required[name]
        return self.optional.get(name)

    def is_required(self, name: str) -> bool:
        return name in self.required

    def is_optional(self, name: str) -> bool:
        return name in self.optional

    def __contains__(self, name) -> bool:
        return name in self.required or name in self.optional

    def fieldnames(self, section: Optional[str] = None,
                   exclude: Optional[Iterable[str]] = None) -> List[str]:
        """
        List field names.

        Args:
            section: Section to list; None lists every section in order
            exclude: Names to leave out. When given, the result is also
                de-duplicated (first occurrence wins).

        Returns:
            Field names in document order

        Raises:
            UnknownSectionError: If section is not in the rule set
        """
        if section is not None:
            if section not in self.sections:
                raise UnknownSectionError(section)
            names = list(self.sections[section])
        else:
            names = [name for fields in self.sections.values() for name in fields]

        if exclude is not None:
            excluded = set(exclude)
            seen = set()
            result = []
            for name in names:
                if name in excluded or name in seen:
                    continue
                seen.add(name)
                result.append(name)
            names = result

        return names

    def promote(self, name: str) -> None:
        """Move a field from optional to required. No-op if not optional."""
        if name in self.optional:
            self.required[name] = self.optional.pop(name)
            logger.debug(f"Field {name} is now required")

    def demote(self, name: str) -> None:
        """Move a field from required to optional. No-op if not required."""
        if name in self.required:
            self.optional[name] = self.required.pop(name)
            logger.debug(f"Field {name} is now optional")
