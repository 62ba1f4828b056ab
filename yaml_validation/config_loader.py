"""Rule set loading from local paths, file:// and http(s):// URIs, or streams."""

import io
import json
import logging
import os
import re
import urllib.error
import urllib.parse
import urllib.request
from importlib.resources import files
from typing import Any, Dict

import yaml
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .errors import ConfigNotFound, ConfigParseError

logger = logging.getLogger(__name__)

BOOL_TAG = "tag:yaml.org,2002:bool"
INT_TAG = "tag:yaml.org,2002:int"
FLOAT_TAG = "tag:yaml.org,2002:float"
TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class RuleSetLoader(yaml.SafeLoader):
    """
    SafeLoader with the YAML 1.2 core scalar types.

    YAML 1.1 reads `yes`/`no`/`on`/`off` as booleans, `01234` as octal and
    `12:30` as base 60, which breaks `enum` lists and `case` keys holding
    answers, postcodes or times. Here those stay strings; only `true`/`false`,
    plain decimal integers and floats are typed.
    """


RuleSetLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers
            if tag not in (BOOL_TAG, INT_TAG, FLOAT_TAG, TIMESTAMP_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
RuleSetLoader.add_implicit_resolver(
    BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
RuleSetLoader.add_implicit_resolver(
    INT_TAG,
    re.compile(r"^[-+]?(?:0|[1-9][0-9]*)$"),
    list("-+0123456789"),
)
RuleSetLoader.add_implicit_resolver(
    FLOAT_TAG,
    re.compile(r"""^(?:[-+]?(?:0|[1-9][0-9]*)(?:\.[0-9]*)?(?:[eE][-+]?[0-9]+)?
                   |[-+]?\.[0-9]+(?:[eE][-+]?[0-9]+)?
                   |[-+]?\.(?:inf|Inf|INF)
                   |\.(?:nan|NaN|NAN))$""", re.X),
    list("-+0123456789."),
)


class ConfigLoader:
    """Reads a YAML rule set and checks it has the section -> field -> rule shape."""

    FETCH_TIMEOUT = 10  # seconds, remote rule sets only
    MAX_REMOTE_SIZE = 5 * 1024 * 1024  # 5 MB

    def __init__(self):
        schema_file = files("yaml_validation").joinpath("ruleset.schema.json")
        with schema_file.open("r") as f:
            self.schema = json.load(f)
        self._schema_validator = Draft7Validator(self.schema)

    def load(self, source) -> Dict[str, Any]:
        """
        Load a rule set document.

        Supports:
        - Filesystem paths (str or os.PathLike)
        - file:// - Local filesystem (absolute paths)
        - http:// and https:// - Remote rule sets
        - Open text or binary streams, or raw bytes

        Args:
            source: Where the rule set lives

        Returns:
            Parsed rule set: section -> field -> rule dict

        Raises:
            ConfigNotFound: If the source does not exist or cannot be fetched
            ConfigParseError: If the content is not a valid rule set
            ValueError: If the URI scheme is not supported
        """
        if hasattr(source, "read"):
            return self.load_string(source.read(), source=getattr(source, "name", None))

        if isinstance(source, bytes):
            return self.load_string(source)

        if isinstance(source, os.PathLike):
            return self._load_path(os.fspath(source))

        if not isinstance(source, str):
            raise TypeError(
                f"Rule set source must be a path, URI or stream, got {type(source).__name__}"
            )

        parsed = urllib.parse.urlparse(source)

        # Windows drive letters parse as a one-character scheme
        if not parsed.scheme or len(parsed.scheme) == 1:
            return self._load_path(source)

        if parsed.scheme == "file":
            return self._load_path(urllib.parse.unquote(parsed.path))

        if parsed.scheme in ("http", "https"):
            return self.load_string(self._fetch_uri(source), source=source)

        raise ValueError(f"Unsupported URI scheme: {parsed.scheme} in {source}")

    def load_string(self, content, source=None) -> Dict[str, Any]:
        """
        Parse and check rule set content already in memory.

        Args:
            content: YAML text (str or bytes)
            source: Optional label used in log messages and errors

        Returns:
            Parsed rule set
        """
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ConfigParseError(f"not UTF-8 text: {e}", source=source) from e

        try:
            document = yaml.load(io.StringIO(content), Loader=RuleSetLoader)
        except yaml.YAMLError as e:
            raise ConfigParseError(str(e), source=source) from e

        document = self._check_structure(document, source)
        logger.debug(f"Loaded rule set from {source or '<string>'}: {len(document)} sections")
        return document

    def _load_path(self, path: str) -> Dict[str, Any]:
        """Load YAML file from disk."""
        if not os.path.isfile(path):
            logger.debug(f"Rule set not found: {path}")
            raise ConfigNotFound(source=path)

        with open(path, "rb") as f:
            return self.load_string(f.read(), source=path)

    def _fetch_uri(self, uri: str) -> bytes:
        """Fetch content from HTTP/HTTPS URI."""
        try:
            with urllib.request.urlopen(uri, timeout=self.FETCH_TIMEOUT) as response:
                raw = response.read(self.MAX_REMOTE_SIZE + 1)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise ConfigNotFound(source=uri) from e
            raise ConfigNotFound(f"Failed to fetch rule set from {uri}: {e}", source=uri) from e
        except (urllib.error.URLError, OSError) as e:
            raise ConfigNotFound(f"Failed to fetch rule set from {uri}: {e}", source=uri) from e

        if len(raw) > self.MAX_REMOTE_SIZE:
            raise ConfigParseError(
                f"remote rule set exceeds {self.MAX_REMOTE_SIZE // (1024 * 1024)} MB limit",
                source=uri,
            )
        return raw

    def _check_structure(self, document, source) -> Dict[str, Any]:
        """
        Check the parsed document against the bundled rule set schema.

        An empty document is an empty rule set; empty sections and empty
        field rules are normalized to empty dicts.
        """
        if document is None:
            return {}

        error = best_match(self._schema_validator.iter_errors(document))
        if error is not None:
            location = " -> ".join(str(p) for p in error.path) if error.path else "root"
            raise ConfigParseError(f"at {location}: {error.message}", source=source)

        normalized = {}
        for section, fields in document.items():
            fields = fields or {}
            normalized[section] = {name: rule or {} for name, rule in fields.items()}
            for name, rule in normalized[section].items():
                self._check_patterns(rule, f"{section} -> {name}", source)
        return normalized

    def _check_patterns(self, rule, location, source):
        """Compile every regex in a rule and its case overrides."""
        if "regex" in rule:
            try:
                re.compile(str(rule["regex"]))
            except re.error as e:
                raise ConfigParseError(f"at {location}: bad regex: {e}", source=source) from e
        for case_value, override in (rule.get("case") or {}).items():
            self._check_patterns(override or {}, f"{location} -> case {case_value}", source)
