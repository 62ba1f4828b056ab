"""
Tests for YAMLValidator API

Tests the public API methods against the bundled fixture rule set.
"""
import os
import threading

import pytest

from yaml_validation import (
    CheckerRegistry,
    ConfigNotFound,
    ConfigParseError,
    LoadResult,
    PluginResolutionError,
    UnknownSectionError,
    UnsafeEvalDisabled,
    YAMLValidator,
)

FIXTURES = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def validator():
    """Create a YAMLValidator over tests/fixtures/test.yml."""
    return YAMLValidator(os.path.join(FIXTURES, "test.yml"))


@pytest.fixture
def good_form():
    """A step1 form that passes every rule."""
    return {
        "name": "Test Person",
        "password": "xasdfjakslr453$",
        "plz": "64569",
        "word": "Herr",
        "age": 55,
    }


class TestInitialization:
    """Test YAMLValidator construction."""

    def test_create_validator(self, validator):
        """Test that validator can be created."""
        assert validator is not None
        assert validator.allow_subs is False

    def test_sections_in_document_order(self, validator):
        """Test that sections keep document order."""
        assert validator.sections() == ["step1", "step2"]

    def test_missing_file(self, tmp_path):
        """Test construction against a nonexistent path."""
        with pytest.raises(ConfigNotFound) as exc_info:
            YAMLValidator(str(tmp_path / "nope.yml"))
        assert str(exc_info.value) == "file does not exist"

    def test_broken_yaml(self):
        """Test construction against a file that is not valid YAML."""
        with pytest.raises(ConfigParseError) as exc_info:
            YAMLValidator(os.path.join(FIXTURES, "broken.yml"))
        assert "classify" in str(exc_info.value)

    def test_from_stream(self):
        """Test construction from an open file."""
        with open(os.path.join(FIXTURES, "test.yml")) as f:
            validator = YAMLValidator(f)
        assert "age" in validator.fieldnames("step1")


class TestLoad:
    """Test YAMLValidator.load() error values."""

    def test_load_success(self):
        """Test that a good rule set yields a validator and no error."""
        result = YAMLValidator.load(os.path.join(FIXTURES, "test.yml"))
        assert isinstance(result, LoadResult)
        assert result
        assert result.validator is not None
        assert result.errstr == ""

    def test_load_missing_file(self, tmp_path):
        """Test that a missing file yields the exact error string."""
        result = YAMLValidator.load(str(tmp_path / "nope.yml"))
        assert not result
        assert result.validator is None
        assert result.errstr == "file does not exist"

    def test_load_broken_file(self):
        """Test that invalid YAML yields a classification error string."""
        result = YAMLValidator.load(os.path.join(FIXTURES, "broken.yml"))
        assert not result
        assert isinstance(result.error, ConfigParseError)
        assert result.errstr.startswith("failed to classify rule set")

    def test_errors_are_per_call(self, tmp_path):
        """Test that a later failure does not overwrite an earlier result."""
        first = YAMLValidator.load(str(tmp_path / "nope.yml"))
        second = YAMLValidator.load(os.path.join(FIXTURES, "broken.yml"))
        assert first.errstr == "file does not exist"
        assert second.errstr != first.errstr


class TestCheck:
    """Test check() against the fixture rules."""

    def test_required_length_range(self, validator):
        """Test length 8,122 on a required field."""
        assert validator.check("name", "Test Person") is True
        assert validator.check("name", "x" * 8) is True
        assert validator.check("name", "x" * 122) is True
        assert validator.check("name", "x" * 7) is False
        assert validator.check("name", "x" * 123) is False

    def test_open_ended_length(self, validator):
        """Test length '10,' accepts anything of 10 or more."""
        assert validator.check("password", "x" * 10) is True
        assert validator.check("password", "x" * 500) is True
        assert validator.check("password", "x" * 9) is False

    def test_single_length_bound_is_exclusive(self, validator):
        """Test that a bare length bound of 8 rejects exactly 8."""
        assert validator.check("nickname", "x" * 9) is True
        assert validator.check("nickname", "x" * 8) is False

    def test_enum(self, validator):
        """Test enumerated values."""
        assert validator.check("word", "Herr") is True
        assert validator.check("word", "Chef") is False

    def test_min_max(self, validator):
        """Test numeric bounds."""
        assert validator.check("age", 17) is False
        assert validator.check("age", 18) is True
        assert validator.check("age", 65) is True
        assert validator.check("age", 66) is False

    def test_numeric_strings_compare_numerically(self, validator):
        """Test that form-submitted digits are compared as numbers."""
        assert validator.check("age", "55") is True
        assert validator.check("age", "100") is False
        assert validator.check("age", "old") is False

    def test_regex(self, validator):
        """Test unanchored-by-default regex with an anchored pattern."""
        assert validator.check("plz", "64569") is True
        assert validator.check("plz", 1234) is True
        assert validator.check("plz", "123") is False

    def test_required_blank_fails(self, validator):
        """Test that blank values fail required fields."""
        assert validator.check("name", "") is False
        assert validator.check("name", None) is False

    def test_optional_blank_passes(self, validator):
        """Test that blank values pass optional fields whatever their criteria."""
        assert validator.check("plz", "") is True
        assert validator.check("word", None) is True

    def test_unknown_field_passes(self, validator):
        """Test that a field without any rule passes."""
        assert validator.check("unknown", "anything") is True

    def test_explicit_rule(self, validator):
        """Test that an explicit rule replaces the configured one."""
        rule = {"type": "required", "enum": ["a", "b"]}
        assert validator.check("age", "a", rule) is True
        assert validator.check("age", "", rule) is False
        assert validator.check("age", "", {"type": "optional", "min": 5}) is True

    def test_explicit_rule_without_type_is_optional(self, validator):
        """Test that a rule without a type treats blank as valid."""
        assert validator.check("name", "", {"length": "3,"}) is True

    def test_plugin(self, validator):
        """Test the bundled EMail plugin."""
        assert validator.check("email", "someone@example.org") is True
        assert validator.check("email", "someone") is False

    def test_unknown_plugin_is_fatal(self, validator):
        """Test that an unresolvable plugin raises rather than failing."""
        with pytest.raises(PluginResolutionError):
            validator.check("x", "value", {"plugin": "NoSuchPlugin"})

    def test_sub_disabled_is_fatal(self, validator):
        """Test that sub raises unless allowed."""
        with pytest.raises(UnsafeEvalDisabled):
            validator.check("x", "value", {"sub": "len(value) > 2"})


class TestCheckList:
    """Test check_list() method."""

    def test_check_list(self, validator):
        """Test several values at once."""
        assert validator.check_list("age", [17, 18, 65, 66]) == [False, True, True, False]

    def test_check_list_empty(self, validator):
        """Test an empty list."""
        assert validator.check_list("age", []) == []

    def test_check_list_rejects_scalar(self, validator):
        """Test that a non-list is rejected."""
        with pytest.raises(TypeError):
            validator.check_list("age", 17)


class TestValidate:
    """Test validate() method."""

    def test_valid_form(self, validator, good_form):
        """Test that a good form has no errors."""
        assert validator.validate("step1", good_form) == {}

    def test_every_failure_reported(self, validator, good_form):
        """Test that all failing fields are collected in one pass."""
        form = dict(good_form, name="short", age=17, word="Chef")
        errors = validator.validate("step1", form)
        assert errors == {
            "name": "name must be 8 to 122 characters",
            "age": "age must be between 18 and 65",
            "word": "choose a salutation",
        }

    def test_missing_required_field(self, validator, good_form):
        """Test that a missing required field fails."""
        del good_form["password"]
        assert validator.validate("step1", good_form) == {"password": "password too short"}

    def test_no_validate_skipped(self, validator, good_form):
        """Test that no_validate fields are never reported."""
        assert "comment" not in validator.validate("step1", good_form)

    def test_field_without_message(self, validator, good_form):
        """Test that a failing field without message reports ''."""
        good_form["nickname"] = "short"
        assert validator.validate("step1", good_form) == {"nickname": ""}

    def test_unknown_section(self, validator):
        """Test that validating an unknown section raises."""
        with pytest.raises(UnknownSectionError):
            validator.validate("step9", {})

    def test_case_override(self, validator):
        """Test that the dependency value selects the zip rule."""
        assert "zip" not in validator.validate("step2", {"country": "DE", "zip": "64569"})
        assert "zip" in validator.validate("step2", {"country": "DE", "zip": "1234AB"})
        assert "zip" not in validator.validate("step2", {"country": "NL", "zip": "1234 AB"})

    def test_case_override_type(self, validator):
        """Test that the override's type decides on blank values."""
        assert "zip" in validator.validate("step2", {"country": "DE", "zip": ""})
        assert "zip" not in validator.validate("step2", {"country": "NL", "zip": ""})

    def test_no_matching_case_uses_field_rule(self, validator):
        """Test that an unmatched dependency value falls back to the field's own rule."""
        assert "zip" not in validator.validate("step2", {"country": "FR", "zip": "anything"})

    def test_missing_dependency(self, validator):
        """Test that a blank dependency fails the dependent field."""
        errors = validator.validate("step2", {"country": "", "zip": "64569"})
        assert errors["zip"] == "invalid zip code"
        assert "country" in errors

    def test_plugin_in_form(self, validator):
        """Test that plugin failures are reported with the message."""
        errors = validator.validate("step2", {"country": "NL", "email": "nope"})
        assert errors == {"email": "invalid e-mail address"}


class TestDependencyScenario:
    """A field whose rule depends on another field of the same form."""

    @pytest.fixture
    def dependent(self, tmp_path):
        path = tmp_path / "dep.yml"
        path.write_text(
            "form:\n"
            "  a:\n"
            "    type: optional\n"
            "  b:\n"
            "    depends_on: a\n"
            "    message: b is wrong\n"
            "    case:\n"
            "      x:\n"
            "        enum: [y, z]\n"
        )
        return YAMLValidator(str(path))

    def test_matching_case_passes(self, dependent):
        assert "b" not in dependent.validate("form", {"a": "x", "b": "y"})

    def test_matching_case_fails(self, dependent):
        assert dependent.validate("form", {"a": "x", "b": "q"}) == {"b": "b is wrong"}

    def test_blank_dependency_fails(self, dependent):
        assert dependent.validate("form", {"a": "", "b": "y"}) == {"b": "b is wrong"}

    def test_absent_dependency_fails(self, dependent):
        assert dependent.validate("form", {"b": "y"}) == {"b": "b is wrong"}


class TestTextLikeScalars:
    """Rule values that YAML 1.1 would turn into booleans or numbers."""

    @pytest.fixture
    def answers(self, tmp_path):
        path = tmp_path / "answers.yml"
        path.write_text(
            "form:\n"
            "  answer:\n"
            "    enum: [yes, no]\n"
            "    message: answer yes or no\n"
            "  zipc:\n"
            "    enum: [01234, 12:30]\n"
            "  n:\n"
            "    depends_on: answer\n"
            "    message: n is wrong\n"
            "    case:\n"
            "      yes:\n"
            "        enum: [a]\n"
        )
        return YAMLValidator(str(path))

    def test_enum_yes_no(self, answers):
        assert answers.check("answer", "yes") is True
        assert answers.check("answer", "no") is True

    def test_enum_does_not_match_one(self, answers):
        assert answers.check("answer", 1) is False
        assert answers.check("answer", True) is False

    def test_enum_leading_zero_and_time(self, answers):
        assert answers.check("zipc", "01234") is True
        assert answers.check("zipc", "12:30") is True
        assert answers.check("zipc", "1234") is False

    def test_case_keyed_by_yes(self, answers):
        assert answers.validate("form", {"answer": "yes", "n": "zzz"}) == {"n": "n is wrong"}
        assert answers.validate("form", {"answer": "yes", "n": "a"}) == {}


class TestFieldnames:
    """Test fieldnames() method."""

    def test_section_fieldnames(self, validator):
        """Test a section's names in document order."""
        assert validator.fieldnames("step1") == [
            "name", "password", "plz", "word", "age", "nickname", "comment",
        ]

    def test_all_fieldnames(self, validator):
        """Test that all sections are concatenated."""
        names = validator.fieldnames()
        assert names[:7] == validator.fieldnames("step1")
        assert names[7:] == ["country", "zip", "email"]

    def test_exclude(self, validator):
        """Test excluding names."""
        names = validator.fieldnames("step1", exclude=["password", "comment"])
        assert names == ["name", "plz", "word", "age", "nickname"]


class TestMessage:
    """Test message() method."""

    def test_configured_message(self, validator):
        assert validator.message("age") == "age must be between 18 and 65"

    def test_missing_message(self, validator):
        assert validator.message("country") == ""

    def test_unknown_field(self, validator):
        assert validator.message("unknown") == ""


class TestPromoteDemote:
    """Test promote() and demote()."""

    def test_demote_makes_blank_valid(self, validator):
        """Test that a demoted field accepts blank values."""
        assert validator.check("name", "") is False
        validator.demote("name")
        assert validator.check("name", "") is True
        assert validator.check("name", "short") is False

    def test_promote_makes_blank_invalid(self, validator):
        """Test that a promoted field rejects blank values."""
        assert validator.check("plz", "") is True
        validator.promote("plz")
        assert validator.check("plz", "") is False

    def test_validate_uses_configured_type_after_promote(self, validator, good_form):
        """Test that validate() keeps the rule's own type for a promoted field."""
        del good_form["plz"]
        validator.promote("plz")
        assert validator.check("plz", "") is False
        assert validator.validate("step1", good_form) == {}

    def test_validate_uses_configured_type_after_demote(self, validator, good_form):
        """Test that validate() keeps the rule's own type for a demoted field."""
        del good_form["name"]
        validator.demote("name")
        assert validator.check("name", "") is True
        assert validator.validate("step1", good_form) == {
            "name": "name must be 8 to 122 characters"
        }

    def test_untyped_rule_defaults_to_optional(self, tmp_path):
        """Test that a promoted field without a type stays optional in validate()."""
        path = tmp_path / "rules.yml"
        path.write_text("form:\n  a:\n    min: 1\n")
        validator = YAMLValidator(str(path))
        validator.promote("a")
        assert validator.validate("form", {}) == {}

    def test_round_trip_keeps_rule(self, validator):
        """Test that promote then demote restores membership and rule."""
        before = dict(validator.index.optional["plz"])
        validator.promote("plz")
        validator.demote("plz")
        assert "plz" in validator.index.optional
        assert "plz" not in validator.index.required
        assert validator.index.optional["plz"] == before

    def test_noop_for_unknown_field(self, validator):
        """Test that unknown fields are ignored."""
        validator.promote("unknown")
        validator.demote("unknown")
        assert "unknown" not in validator.index

    def test_idempotent(self, validator):
        """Test that repeated calls change nothing further."""
        validator.promote("plz")
        validator.promote("plz")
        assert validator.index.is_required("plz")
        assert not validator.index.is_optional("plz")


class TestReload:
    """Test reload() method."""

    def test_reload_discards_runtime_changes(self, validator):
        """Test that reload restores the configured classification."""
        validator.demote("name")
        validator.reload()
        assert validator.index.is_required("name")

    def test_reload_picks_up_changes(self, tmp_path):
        """Test that reload re-reads the file."""
        path = tmp_path / "rules.yml"
        path.write_text("form:\n  a:\n    type: optional\n")
        validator = YAMLValidator(str(path))
        assert validator.check("a", "") is True

        path.write_text("form:\n  a:\n    type: required\n")
        validator.reload()
        assert validator.check("a", "") is False

    def test_failed_reload_keeps_rules(self, tmp_path):
        """Test that a failed reload leaves the old rule set in place."""
        path = tmp_path / "rules.yml"
        path.write_text("form:\n  a:\n    type: required\n")
        validator = YAMLValidator(str(path))

        path.unlink()
        with pytest.raises(ConfigNotFound):
            validator.reload()
        assert validator.check("a", "") is False


class TestRegistry:
    """Test per-validator plugin registries."""

    def test_custom_registry(self):
        """Test a plugin registered on a private registry."""
        registry = CheckerRegistry()
        registry.register("Even", lambda value, rule: int(value) % 2 == 0)
        validator = YAMLValidator(os.path.join(FIXTURES, "test.yml"), registry=registry)
        assert validator.check("n", 4, {"plugin": "Even"}) is True
        assert validator.check("n", 3, {"plugin": "Even"}) is False

    def test_allow_subs(self):
        """Test sub expressions when allowed."""
        validator = YAMLValidator(os.path.join(FIXTURES, "test.yml"), allow_subs=True)
        assert validator.check("n", "abc", {"sub": "len(value) == 3"}) is True
        assert validator.check("n", "abcd", {"sub": "len(_) == 3"}) is False


class TestConcurrency:
    """Test that promote/demote and check can interleave across threads."""

    def test_threads(self, validator):
        errors = []

        def flip():
            for _ in range(200):
                validator.promote("plz")
                validator.demote("plz")

        def check():
            for _ in range(200):
                try:
                    validator.check("plz", "64569")
                    assert not ("plz" in validator.index.required
                                and "plz" in validator.index.optional)
                except Exception as e:  # noqa: BLE001
                    errors.append(e)

        threads = [threading.Thread(target=flip), threading.Thread(target=check)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
