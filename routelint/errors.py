# routelint/errors.py
"""
routelint error types.

Error Hierarchy
───────────────
  RouteLintError (base)
  ├── CompilationError    - a source document does not parse
  ├── ReferenceLoadError  - a reference stub cannot be read or parsed
  └── ConfigurationError  - invalid analyzer options

None of these are raised for the analyzer's own "nothing to report"
outcomes (unsupported lambda shape, unresolved call, foreign decorator);
those are silent skips.  The exceptions cover the infrastructure around
the analyzer: bad input files and bad configuration.
"""

from __future__ import annotations

from typing import Optional


class RouteLintError(Exception):
    """Base class for all routelint errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class CompilationError(RouteLintError):
    """A source document could not be parsed into a syntax tree."""

    def __init__(
        self,
        file: str,
        message: str,
        line: int = 0,
        column: int = 0,
    ) -> None:
        self.file = file
        self.line = line
        self.column = column
        super().__init__(f"{file}:{line}:{column}: {message}")

    @classmethod
    def from_syntax_error(cls, file: str, exc: SyntaxError) -> CompilationError:
        return cls(
            file=file,
            message=exc.msg or "invalid syntax",
            line=exc.lineno or 0,
            column=exc.offset or 0,
        )


class ReferenceLoadError(RouteLintError):
    """A reference stub could not be loaded."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot load reference {path}: {reason}")


class ConfigurationError(RouteLintError):
    """Invalid analyzer option value."""

    def __init__(self, option: str, message: str, value: Optional[str] = None) -> None:
        self.option = option
        self.value = value
        detail = f" (got {value!r})" if value is not None else ""
        super().__init__(f"{option}: {message}{detail}")


__all__ = [
    "RouteLintError",
    "CompilationError",
    "ReferenceLoadError",
    "ConfigurationError",
]
