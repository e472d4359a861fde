"""
routelint/diagnostics.py
════════════════════════

Diagnostic model shared by the checkers, the runner, the harness and the
reporters.

  DiagnosticDescriptor  — static rule metadata (id, title, message format)
  Diagnostic            — one immutable finding: descriptor + location +
                          ordered format arguments + effective severity
  DiagnosticDescriptors — the rule catalog

A Diagnostic never carries a pre-rendered message.  The message is
produced from ``descriptor.message_format`` and ``arguments`` on demand,
so consumers (tests in particular) can inspect the raw arguments.
"""

from __future__ import annotations

import ast
import enum
import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from routelint.errors import ConfigurationError


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — SEVERITY & LOCATION
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(enum.Enum):
    """
    Diagnostic severity levels.

    Each carries:
      • label       — the lower-case name used in output and options
      • color       — termcolor colour name
      • sarif_level — SARIF 2.1.0 ``level`` string
      • rank        — ordering, higher is more severe
    """

    HIDDEN = ("hidden", "white", "none", 0)
    INFORMATION = ("information", "cyan", "note", 1)
    WARNING = ("warning", "yellow", "warning", 2)
    ERROR = ("error", "red", "error", 3)

    def __init__(self, label: str, color: str, sarif_level: str, rank: int) -> None:
        self.label = label
        self.color = color
        self.sarif_level = sarif_level
        self.rank = rank

    @classmethod
    def from_string(cls, s: str) -> DiagnosticSeverity:
        """Parse a severity from its label (case-insensitive)."""
        s_low = s.strip().lower()
        if s_low in ("info", "note"):
            return cls.INFORMATION
        for member in cls:
            if member.label == s_low:
                return member
        raise ConfigurationError(
            "severity",
            "expected one of hidden, information, warning, error",
            value=s,
        )


@dataclass(frozen=True)
class SourceLocation:
    """A span of source text; line and column are 1-based."""
    file: str = ""
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    @classmethod
    def from_node(cls, file: str, node: ast.AST) -> SourceLocation:
        line = getattr(node, "lineno", 0) or 0
        col = getattr(node, "col_offset", -1)
        end_line = getattr(node, "end_lineno", None) or line
        end_col = getattr(node, "end_col_offset", None)
        return cls(
            file=file,
            line=line,
            column=col + 1 if col is not None and col >= 0 else 0,
            end_line=end_line,
            end_column=end_col + 1 if end_col is not None else 0,
        )

    def sort_key(self) -> Tuple[int, int]:
        return (self.line, self.column)

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DESCRIPTORS & DIAGNOSTICS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DiagnosticDescriptor:
    """
    Static description of one rule.

    Attributes
    ----------
    id               : Stable rule identifier (e.g. "RL0001")
    title            : Short human-readable title
    message_format   : ``str.format`` template filled with the diagnostic's
                       positional arguments
    category         : Rule family
    default_severity : Severity used unless configured otherwise
    help_uri         : Optional documentation link
    """
    id: str
    title: str
    message_format: str
    category: str
    default_severity: DiagnosticSeverity = DiagnosticSeverity.WARNING
    help_uri: str = ""


@dataclass(frozen=True)
class Diagnostic:
    """A single finding.  Produced once, never mutated."""
    descriptor: DiagnosticDescriptor
    location: SourceLocation
    arguments: Tuple[str, ...] = ()
    severity: Optional[DiagnosticSeverity] = None

    def __post_init__(self) -> None:
        if self.severity is None:
            object.__setattr__(self, "severity", self.descriptor.default_severity)

    @classmethod
    def create(
        cls,
        descriptor: DiagnosticDescriptor,
        location: SourceLocation,
        *arguments: str,
    ) -> Diagnostic:
        return cls(descriptor=descriptor, location=location, arguments=tuple(arguments))

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def message(self) -> str:
        return self.descriptor.message_format.format(*self.arguments)

    def with_severity(self, severity: DiagnosticSeverity) -> Diagnostic:
        return replace(self, severity=severity)

    def to_json(self) -> Dict[str, Any]:
        loc = self.location
        return {
            "id": self.id,
            "severity": self.severity.label,
            "message": self.message,
            "arguments": list(self.arguments),
            "file": loc.file,
            "line": loc.line,
            "column": loc.column,
            "endLine": loc.end_line,
            "endColumn": loc.end_column,
        }

    def to_json_str(self) -> str:
        return json.dumps(self.to_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message [id]."""
        return f"{self.location}: {self.severity.label}: {self.message} [{self.id}]"


class DiagnosticDescriptors:
    """Rule catalog."""

    MISPLACED_LAMBDA_ATTRIBUTE = DiagnosticDescriptor(
        id="RL0001",
        title="Route handler decorator placed on a method called by the lambda",
        message_format=(
            "'{0}' is applied to method '{1}', which is called by a route handler "
            "lambda; the router ignores it there. Move it to the lambda instead."
        ),
        category="Usage",
        default_severity=DiagnosticSeverity.WARNING,
    )

    ANALYZER_INTERNAL_ERROR = DiagnosticDescriptor(
        id="RL9000",
        title="Analyzer raised an exception",
        message_format="Checker '{0}' failed while analyzing this lambda: {1}",
        category="Compiler",
        default_severity=DiagnosticSeverity.INFORMATION,
    )

    @classmethod
    def all(cls) -> Tuple[DiagnosticDescriptor, ...]:
        return (cls.MISPLACED_LAMBDA_ATTRIBUTE, cls.ANALYZER_INTERNAL_ERROR)


__all__ = [
    "DiagnosticSeverity",
    "SourceLocation",
    "DiagnosticDescriptor",
    "Diagnostic",
    "DiagnosticDescriptors",
]
