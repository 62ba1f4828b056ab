"""
Public API for yaml-validation

This is the "front door" - the main entry point for all validation operations.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from .checkers import CheckerRegistry, get_registry
from .config_loader import ConfigLoader
from .errors import ConfigError
from .field_index import FieldIndex
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)


class LoadResult(NamedTuple):
    """
    Outcome of YAMLValidator.load().

    Exactly one of validator / error is set. Each call gets its own result,
    so concurrent loads never overwrite each other's error message.
    """

    validator: Optional["YAMLValidator"]
    error: Optional[ConfigError]

    @property
    def errstr(self) -> str:
        """Error message ("file does not exist", ...) or "" on success."""
        return str(self.error) if self.error is not None else ""

    def __bool__(self):
        return self.validator is not None


class YAMLValidator:
    """
    Validates form fields against a YAML rule set.

    Example:
        from yaml_validation import YAMLValidator

        validator = YAMLValidator("rules.yml")

        # One field
        if not validator.check("age", 17):
            print(validator.message("age"))

        # A whole form
        errors = validator.validate("step1", {"name": "Test Person", "age": 55})
        for field, message in errors.items():
            print(f"{field}: {message}")

        # Without exceptions
        result = YAMLValidator.load("missing.yml")
        if not result:
            print(result.errstr)  # "file does not exist"

    Thread safety: one lock per instance serializes promote/demote/reload
    against check/validate. Plugins registered on a shared registry while
    validators are running are not covered by it.
    """

    def __init__(self, source, allow_subs: bool = False,
                 registry: Optional[CheckerRegistry] = None):
        """
        Load the rule set and build the field index.

        Args:
            source: Path, file:// or http(s):// URI, or open stream holding
                the YAML rule set
            allow_subs: Allow `sub` expressions in rules. When False a rule
                using `sub` raises UnsafeEvalDisabled.
            registry: Plugin registry; defaults to the process registry

        Raises:
            ConfigNotFound: If the source does not exist
            ConfigParseError: If the source is not a valid rule set
        """
        self.source = source
        self.registry = registry if registry is not None else get_registry()
        self._allow_subs = bool(allow_subs)
        self._lock = threading.RLock()
        self.config_loader = ConfigLoader()
        self._initialize()

    @classmethod
    def load(cls, source, **kwargs) -> LoadResult:
        """
        Build a validator, returning the error instead of raising it.

        Args:
            source: As for YAMLValidator()
            **kwargs: allow_subs, registry

        Returns:
            LoadResult(validator, error)
        """
        try:
            return LoadResult(cls(source, **kwargs), None)
        except ConfigError as e:
            logger.info(f"Failed to load rule set {source}: {e}")
            return LoadResult(None, e)

    def _initialize(self):
        """Internal initialization logic (used by __init__ and reload)."""
        self.config = self.config_loader.load(self.source)
        self.index = FieldIndex.from_config(self.config)
        self.engine = ValidationEngine(self.index, self.registry, allow_subs=self._allow_subs)
        logger.info(
            f"Loaded rule set {self.source}: {len(self.index.sections)} sections, "
            f"{len(self.index.required)} required fields, {len(self.index.optional)} optional fields"
        )

    @property
    def allow_subs(self) -> bool:
        return self._allow_subs

    def check(self, field: str, value: Any, rule: Optional[Dict[str, Any]] = None) -> bool:
        """
        Check a single value.

        Args:
            field: Field name; unknown fields without a rule always pass
            value: Candidate value
            rule: Explicit rule used instead of the configured one

        Returns:
            True if the value is valid

        Raises:
            PluginResolutionError: If a `plugin` criterion cannot be resolved
            UnsafeEvalDisabled: If a `sub` criterion is used without allow_subs

        Example:
            validator.check("word", "Herr")   # True
            validator.check("word", "Chef")   # False
        """
        with self._lock:
            return self.engine.check(field, value, rule)

    def check_list(self, field: str, values: List[Any]) -> List[bool]:
        """
        Check several values for one field.

        Example:
            validator.check_list("age", [17, 18, 65, 66])
            # [False, True, True, False]
        """
        with self._lock:
            return self.engine.check_list(field, values)

    def validate(self, section: str, values: Dict[str, Any]) -> Dict[str, str]:
        """
        Validate a whole form.

        Args:
            section: Section (form) name from the rule set
            values: Submitted form, field name -> value

        Returns:
            Dict mapping each failing field to its configured message
            (possibly ""). An empty dict means every field passed.

        Raises:
            UnknownSectionError: If the section is not in the rule set
            FatalValidationError: On plugin or sub misconfiguration

        Example:
            errors = validator.validate("step1", {"name": "Test Person"})
            if not errors:
                print("form ok")
        """
        with self._lock:
            return self.engine.validate(section, values)

    def fieldnames(self, section: Optional[str] = None,
                   exclude: Optional[Iterable[str]] = None) -> List[str]:
        """
        Field names of one section, or of all sections in document order.

        Args:
            section: Section name, or None for every section
            exclude: Names to drop; the result is then de-duplicated
        """
        with self._lock:
            return self.engine.fieldnames(section, exclude=exclude)

    def sections(self) -> List[str]:
        """Section names in document order."""
        with self._lock:
            return list(self.index.sections)

    def message(self, field: str) -> str:
        """Configured failure message for a field, or ""."""
        with self._lock:
            return self.engine.message(field)

    def promote(self, field: str) -> None:
        """Make an optional field required. No-op for other fields."""
        with self._lock:
            self.index.promote(field)

    def demote(self, field: str) -> None:
        """Make a required field optional. No-op for other fields."""
        with self._lock:
            self.index.demote(field)

    def reload(self) -> None:
        """
        Re-read the rule set from its source and rebuild the index.

        Runtime promote/demote changes are discarded. If the source can no
        longer be loaded the current rule set stays in place and the error
        is raised.

        Raises:
            ConfigNotFound: If the source no longer exists
            ConfigParseError: If the source is no longer a valid rule set
        """
        if hasattr(self.source, "read"):
            raise ValueError("Cannot reload a rule set loaded from a stream")

        with self._lock:
            previous = (self.config, self.index, self.engine)
            try:
                self._initialize()
            except ConfigError:
                self.config, self.index, self.engine = previous
                raise
