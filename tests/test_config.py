# tests/test_config.py
"""
Tests for analyzer options, severities and the diagnostic model.
"""

import json

import pytest

from routelint.config import (
    DEFAULT_REGISTRATION_METHODS,
    AnalyzerOptions,
    OutputKind,
)
from routelint.diagnostics import (
    Diagnostic,
    DiagnosticDescriptors,
    DiagnosticSeverity,
    SourceLocation,
)
from routelint.errors import CompilationError, ConfigurationError, RouteLintError


def _diag():
    return Diagnostic.create(
        DiagnosticDescriptors.MISPLACED_LAMBDA_ATTRIBUTE,
        SourceLocation("app.py", 3, 5),
        "Authorize",
        "hello",
    )


class TestAnalyzerOptions:

    def test_defaults(self):
        options = AnalyzerOptions()
        assert options.reserved_namespace == "routekit"
        assert "map_get" in options.registration_methods
        assert not options.concurrent

    def test_from_env(self):
        options = AnalyzerOptions.from_env({
            "ROUTELINT_RESERVED_NAMESPACE": "acme.web",
            "ROUTELINT_REGISTRATION_METHODS": "route, add_route,",
            "ROUTELINT_JOBS": "4",
        })
        assert options.reserved_namespace == "acme.web"
        assert options.registration_methods == frozenset({"route", "add_route"})
        assert options.concurrent
        assert options.max_workers == 4

    def test_from_empty_env(self):
        assert AnalyzerOptions.from_env({}) == AnalyzerOptions()

    def test_single_job_is_sequential(self):
        options = AnalyzerOptions.from_env({"ROUTELINT_JOBS": "1"})
        assert not options.concurrent

    def test_bad_jobs(self):
        with pytest.raises(ConfigurationError) as excinfo:
            AnalyzerOptions.from_env({"ROUTELINT_JOBS": "many"})
        assert "ROUTELINT_JOBS" in str(excinfo.value)

    def test_empty_namespace(self):
        with pytest.raises(ConfigurationError):
            AnalyzerOptions(reserved_namespace="  ")

    def test_no_registration_methods(self):
        with pytest.raises(ConfigurationError):
            AnalyzerOptions(registration_methods=frozenset())

    def test_non_positive_workers(self):
        with pytest.raises(ConfigurationError):
            AnalyzerOptions(max_workers=0)

    def test_unknown_severity_override(self):
        with pytest.raises(ConfigurationError):
            AnalyzerOptions(severity_overrides={"RL0001": "fatal"})

    def test_merged_ignores_none(self):
        options = AnalyzerOptions().merged(reserved_namespace=None, warnings_as_errors=True)
        assert options.reserved_namespace == "routekit"
        assert options.warnings_as_errors
        assert options.registration_methods == DEFAULT_REGISTRATION_METHODS

    def test_rule_enablement(self):
        options = AnalyzerOptions(severity_overrides={"RL0001": "None"})
        assert not options.is_rule_enabled("RL0001")
        assert options.is_rule_enabled("RL9000")

    def test_effective_severity(self):
        assert AnalyzerOptions().effective_severity(_diag()) is DiagnosticSeverity.WARNING
        options = AnalyzerOptions(severity_overrides={"RL0001": "info"})
        assert options.effective_severity(_diag()) is DiagnosticSeverity.INFORMATION

    def test_warnings_as_errors(self):
        options = AnalyzerOptions(warnings_as_errors=True)
        assert options.effective_severity(_diag()) is DiagnosticSeverity.ERROR
        lowered = AnalyzerOptions(warnings_as_errors=True, severity_overrides={"RL0001": "hidden"})
        assert lowered.effective_severity(_diag()) is DiagnosticSeverity.HIDDEN


class TestOutputKind:

    @pytest.mark.parametrize("text,kind", [
        ("library", OutputKind.LIBRARY),
        ("Console", OutputKind.CONSOLE_APPLICATION),
    ])
    def test_from_string(self, text, kind):
        assert OutputKind.from_string(text) is kind

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            OutputKind.from_string("dll")


class TestDiagnosticModel:

    def test_severity_from_string(self):
        assert DiagnosticSeverity.from_string("WARNING") is DiagnosticSeverity.WARNING
        assert DiagnosticSeverity.from_string("note") is DiagnosticSeverity.INFORMATION

    def test_severity_rank(self):
        ranks = [s.rank for s in DiagnosticSeverity]
        assert ranks == sorted(ranks)

    def test_default_severity_from_descriptor(self):
        assert _diag().severity is DiagnosticSeverity.WARNING

    def test_with_severity_is_a_copy(self):
        diag = _diag()
        raised = diag.with_severity(DiagnosticSeverity.ERROR)
        assert diag.severity is DiagnosticSeverity.WARNING
        assert raised.severity is DiagnosticSeverity.ERROR
        assert raised.arguments == diag.arguments

    def test_message_is_formatted_from_arguments(self):
        assert _diag().message.startswith("'Authorize' is applied to method 'hello'")

    def test_json(self):
        record = json.loads(_diag().to_json_str())
        assert record["id"] == "RL0001"
        assert record["file"] == "app.py"

    def test_location_str(self):
        assert str(SourceLocation("app.py", 3, 5)) == "app.py:3:5"
        assert str(SourceLocation("app.py", 3)) == "app.py:3"

    def test_catalog(self):
        assert [d.id for d in DiagnosticDescriptors.all()] == ["RL0001", "RL9000"]


class TestErrors:

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, RouteLintError)
        assert issubclass(CompilationError, RouteLintError)

    def test_compilation_error_from_syntax_error(self):
        try:
            compile("def (", "app.py", "exec")
        except SyntaxError as exc:
            error = CompilationError.from_syntax_error("app.py", exc)
        assert error.file == "app.py"
        assert error.line == 1
        assert str(error).startswith("app.py:1:")

    def test_configuration_error_message(self):
        error = ConfigurationError("format", "unknown output format", value="xml")
        assert str(error) == "format: unknown output format (got 'xml')"
