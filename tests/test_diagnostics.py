from unify_build.foundation.errors import (
    ConfigNotFoundError,
    ConfigParseError,
    ConfigSchemaError,
    MigrationError,
)
from unify_build.framework.diagnostics import (
    ErrorCode,
    ValidationIssue,
    ValidationSeverity,
    format_code,
    format_issue,
    issue_from_exception,
)


def test_format_code_pads_to_three_digits():
    assert format_code(ErrorCode.CONFIG_DIR_NOT_FOUND) == "UB104"
    assert format_code(7) == "UB007"


def test_format_issue_with_location_and_suggestion():
    issue = ValidationIssue(
        severity=ValidationSeverity.ERROR,
        code="UB104",
        message="Source directory 'src' does not exist.",
        file_path="build.config.json",
        line=3,
        suggestion="Create it.",
    )

    assert format_issue(issue) == (
        "[UB104] build.config.json:3: Source directory 'src' does not exist.\n    suggestion: Create it."
    )


def test_format_issue_without_location():
    issue = ValidationIssue(severity=ValidationSeverity.WARNING, code="UB106", message="Ambiguous.")

    assert format_issue(issue) == "[UB106] Ambiguous."


def test_exceptions_map_to_codes():
    not_found = issue_from_exception(ConfigNotFoundError("build.config.json", ["/a/build.config.json"]))
    parse = issue_from_exception(ConfigParseError("/a/build.config.json", "Expecting value", line=2, column=5))
    schema = issue_from_exception(ConfigSchemaError("bad type", key_path="projectGroups.g.include"))
    migrate = issue_from_exception(MigrationError("/a/build.config.json", "disk full"))

    assert [i.code for i in (not_found, parse, schema, migrate)] == ["UB100", "UB101", "UB102", "UB107"]
    assert all(i.severity is ValidationSeverity.ERROR for i in (not_found, parse, schema, migrate))
    assert "/a/build.config.json" in not_found.message
    assert (parse.file_path, parse.line) == ("/a/build.config.json", 2)
    assert "projectGroups.g.include" in schema.suggestion
