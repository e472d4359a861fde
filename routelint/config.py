"""
routelint/config.py — analyzer options.

Options come from three places, later ones winning:

  1. defaults below
  2. environment variables (``AnalyzerOptions.from_env``)
  3. command-line flags (applied by ``routelint.cli``)

The reserved namespace is configuration rather than a literal so the same
engine can police sibling frameworks.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Mapping, Optional

from routelint.diagnostics import Diagnostic, DiagnosticSeverity
from routelint.errors import ConfigurationError

DEFAULT_RESERVED_NAMESPACE = "routekit"

DEFAULT_REGISTRATION_METHODS: FrozenSet[str] = frozenset({
    "map",
    "map_get",
    "map_post",
    "map_put",
    "map_delete",
    "map_patch",
    "map_methods",
    "map_fallback",
})

ENV_RESERVED_NAMESPACE = "ROUTELINT_RESERVED_NAMESPACE"
ENV_REGISTRATION_METHODS = "ROUTELINT_REGISTRATION_METHODS"
ENV_JOBS = "ROUTELINT_JOBS"
ENV_REFERENCE_DIR = "ROUTELINT_REFERENCE_DIR"

# Severity override value that disables a rule entirely.
SEVERITY_NONE = "none"


class OutputKind(enum.Enum):
    """How the analyzed sources are treated as a program."""
    LIBRARY = "library"
    CONSOLE_APPLICATION = "console"

    @classmethod
    def from_string(cls, s: str) -> OutputKind:
        s_low = s.strip().lower()
        for member in cls:
            if member.value == s_low:
                return member
        raise ConfigurationError("output-kind", "expected 'library' or 'console'", value=s)


@dataclass(frozen=True)
class AnalyzerOptions:
    """
    Analyzer configuration.

    Attributes
    ----------
    reserved_namespace   : dotted prefix identifying the framework's own
                           decorator types (compared case-insensitively)
    registration_methods : callee names that register a route handler
    concurrent           : analyze source modules on a thread pool
    max_workers          : pool size when ``concurrent`` is set
    severity_overrides   : rule id → severity label, or ``"none"`` to
                           disable the rule
    warnings_as_errors   : promote every warning to an error
    """
    reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE
    registration_methods: FrozenSet[str] = DEFAULT_REGISTRATION_METHODS
    concurrent: bool = False
    max_workers: Optional[int] = None
    severity_overrides: Mapping[str, str] = field(default_factory=dict)
    warnings_as_errors: bool = False

    def __post_init__(self) -> None:
        if not self.reserved_namespace.strip():
            raise ConfigurationError("reserved_namespace", "must not be empty")
        if not self.registration_methods:
            raise ConfigurationError("registration_methods", "must name at least one method")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError("max_workers", "must be positive", value=str(self.max_workers))
        for value in self.severity_overrides.values():
            if value.strip().lower() != SEVERITY_NONE:
                # Raises ConfigurationError for unknown labels.
                DiagnosticSeverity.from_string(value)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> AnalyzerOptions:
        env = os.environ if environ is None else environ
        kwargs: Dict[str, object] = {}

        namespace = env.get(ENV_RESERVED_NAMESPACE, "").strip()
        if namespace:
            kwargs["reserved_namespace"] = namespace

        methods = env.get(ENV_REGISTRATION_METHODS, "").strip()
        if methods:
            kwargs["registration_methods"] = frozenset(
                m.strip() for m in methods.split(",") if m.strip()
            )

        jobs = env.get(ENV_JOBS, "").strip()
        if jobs:
            try:
                workers = int(jobs)
            except ValueError:
                raise ConfigurationError(ENV_JOBS, "expected an integer", value=jobs) from None
            kwargs["concurrent"] = workers > 1
            kwargs["max_workers"] = workers

        return cls(**kwargs)  # type: ignore[arg-type]

    def merged(self, **changes: object) -> AnalyzerOptions:
        """Copy with the non-``None`` ``changes`` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def is_rule_enabled(self, rule_id: str) -> bool:
        value = self.severity_overrides.get(rule_id)
        return value is None or value.strip().lower() != SEVERITY_NONE

    def effective_severity(self, diagnostic: Diagnostic) -> DiagnosticSeverity:
        override = self.severity_overrides.get(diagnostic.id)
        severity = diagnostic.severity
        if override is not None:
            severity = DiagnosticSeverity.from_string(override)
        if self.warnings_as_errors and severity is DiagnosticSeverity.WARNING:
            severity = DiagnosticSeverity.ERROR
        return severity


__all__ = [
    "AnalyzerOptions",
    "OutputKind",
    "DEFAULT_RESERVED_NAMESPACE",
    "DEFAULT_REGISTRATION_METHODS",
    "ENV_REFERENCE_DIR",
    "SEVERITY_NONE",
]
