"""
Exception taxonomy for yaml-validation.

Two families:

- ConfigError: raised while building a validator from a rule set. The
  caller can recover (fix the path, fix the YAML) and try again.
- FatalValidationError: raised while checking a value when the deployment
  itself is broken (unknown plugin, disabled or malformed `sub`). These
  abort the current check/validate call and are never folded into the
  per-field error mapping.

Ordinary validation failures are not exceptions: check() returns False and
validate() reports them in its result mapping.
"""


class YAMLValidationError(Exception):
    """Base class for all errors raised by yaml-validation."""


class ConfigError(YAMLValidationError):
    """Rule set could not be loaded."""


class ConfigNotFound(ConfigError):
    """Rule set source does not exist."""

    def __init__(self, message: str = "file does not exist", source=None):
        super().__init__(message)
        self.source = source


class ConfigParseError(ConfigError):
    """Rule set source exists but is not a valid rule set document."""

    PREFIX = "failed to classify rule set"

    def __init__(self, diagnostic: str, source=None):
        super().__init__(f"{self.PREFIX}: {diagnostic}")
        self.diagnostic = diagnostic
        self.source = source


class UnknownSectionError(YAMLValidationError, KeyError):
    """Section (form) name is not present in the rule set."""

    def __init__(self, section):
        super().__init__(section)
        self.section = section

    def __str__(self):
        return f"Unknown section: {self.section!r}"


class FatalValidationError(YAMLValidationError):
    """Misconfiguration detected while validating a value."""


class PluginResolutionError(FatalValidationError):
    """A `plugin` criterion names a checker that cannot be resolved."""

    def __init__(self, name, reason: str = "not registered"):
        super().__init__(f"Can't check with plugin {name!r}: {reason}")
        self.name = name


class UnsafeEvalDisabled(FatalValidationError):
    """A `sub` criterion was used without allow_subs=True."""

    def __init__(self, field=None):
        super().__init__("Can't use user defined sub unless it is allowed")
        self.field = field


class ExpressionError(FatalValidationError):
    """A `sub` expression uses syntax outside the permitted subset."""
