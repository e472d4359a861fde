"""
routelint/reporter.py
═════════════════════

Diagnostic output.

Output formats
──────────────
  • pretty : colourful rendering with a source excerpt (plain one-liners
             when the stream is not a terminal)
  • gcc    : ``file:line:col: severity: message [RL0001]``
  • json   : one JSON object per line
  • sarif  : SARIF 2.1.0 document, written on ``finish()``
  • html   : standalone HTML page (jinja2), written on ``finish()``

Usage
─────
    with Reporter(sys.stdout, OutputFormat.PRETTY) as rep:
        rep.report_all(results.diagnostics)
"""

from __future__ import annotations

import enum
import json
import sys
import textwrap
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, TextIO, Union

import jinja2
from termcolor import colored

from routelint.diagnostics import Diagnostic, DiagnosticSeverity
from routelint.errors import ConfigurationError


class OutputFormat(enum.Enum):
    PRETTY = "pretty"
    GCC = "gcc"
    JSON = "json"
    SARIF = "sarif"
    HTML = "html"

    @classmethod
    def from_string(cls, s: str) -> OutputFormat:
        s_low = s.strip().lower()
        for member in cls:
            if member.value == s_low:
                return member
        raise ConfigurationError("format", "unknown output format", value=s)


# ═════════════════════════════════════════════════════════════════════════
#  STATS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class ReporterStats:
    """Aggregate counts per severity."""
    error: int = 0
    warning: int = 0
    information: int = 0
    hidden: int = 0

    def record(self, severity: DiagnosticSeverity) -> None:
        setattr(self, severity.label, getattr(self, severity.label) + 1)

    @property
    def total(self) -> int:
        return self.error + self.warning + self.information + self.hidden

    def summary_line(self) -> str:
        parts: List[str] = []
        if self.error:
            parts.append(f"{self.error} error{'s' if self.error != 1 else ''}")
        if self.warning:
            parts.append(f"{self.warning} warning{'s' if self.warning != 1 else ''}")
        if self.information:
            parts.append(f"{self.information} info")
        if self.hidden:
            parts.append(f"{self.hidden} hidden")
        if not parts:
            return "no diagnostics emitted"
        return "; ".join(parts) + f" ({self.total} total)"


# ═════════════════════════════════════════════════════════════════════════
#  RENDERERS
# ═════════════════════════════════════════════════════════════════════════

class _TerminalRenderer:
    """Colourful multi-line rendering with a source excerpt."""

    def __init__(self, stream: TextIO, sources: Mapping[str, str]) -> None:
        self._stream = stream
        self._sources = sources

    def render(self, diag: Diagnostic) -> None:
        lines: List[str] = []

        header = colored(f"{diag.severity.label}[{diag.id}]", diag.severity.color, attrs=["bold"])
        lines.append(f"{header}: {colored(diag.message, 'white', attrs=['bold'])}")

        loc = diag.location
        if loc.file:
            arrow = colored("-->", "blue", attrs=["bold"])
            lines.append(f"  {arrow} {loc}")
            lines.extend(self._render_excerpt(diag))

        note = colored("note", "cyan", attrs=["bold"])
        lines.append(f"  = {note}: {diag.descriptor.title}")
        if diag.descriptor.help_uri:
            hlp = colored("help", "green", attrs=["bold"])
            lines.append(f"  = {hlp}: {diag.descriptor.help_uri}")

        lines.append("")
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()

    def _render_excerpt(self, diag: Diagnostic) -> List[str]:
        loc = diag.location
        text = self._source_line(loc.file, loc.line)
        if text is None:
            return []
        gutter = str(loc.line)
        pipe = colored("|", "blue", attrs=["bold"])
        start = max(loc.column - 1, 0)
        if loc.end_line == loc.line and loc.end_column > loc.column:
            width = loc.end_column - loc.column
        else:
            width = max(len(text) - start, 1)
        marker = colored("^" * width, diag.severity.color, attrs=["bold"])
        blank = " " * len(gutter)
        return [
            f" {colored(gutter, 'blue', attrs=['bold'])} {pipe} {text}",
            f" {blank} {pipe} {' ' * start}{marker}",
        ]

    def _source_line(self, file: str, line: int) -> Optional[str]:
        if line < 1:
            return None
        text = self._sources.get(file)
        if text is None:
            try:
                with open(file, "r", encoding="utf-8", errors="replace") as fh:
                    text = fh.read()
            except OSError:
                return None
        source_lines = text.splitlines()
        if line > len(source_lines):
            return None
        return source_lines[line - 1]


class _PlainRenderer:
    """One GCC-style line per diagnostic."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.to_gcc_format() + "\n")
        self._stream.flush()


class _JsonLinesRenderer:
    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.to_json_str() + "\n")
        self._stream.flush()


_Renderer = Union[_TerminalRenderer, _PlainRenderer, _JsonLinesRenderer]


# ═════════════════════════════════════════════════════════════════════════
#  SARIF 2.1.0 BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _SarifBuilder:
    """Accumulates diagnostics into a SARIF 2.1.0 log."""

    SARIF_VERSION = "2.1.0"
    SARIF_SCHEMA = (
        "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
        "Schemata/sarif-schema-2.1.0.json"
    )

    def __init__(self) -> None:
        self._results: List[Dict[str, Any]] = []
        self._rules: Dict[str, Dict[str, Any]] = {}

    def add(self, diag: Diagnostic) -> None:
        descriptor = diag.descriptor
        if descriptor.id not in self._rules:
            rule: Dict[str, Any] = {
                "id": descriptor.id,
                "shortDescription": {"text": descriptor.title},
                "properties": {"category": descriptor.category},
            }
            if descriptor.help_uri:
                rule["helpUri"] = descriptor.help_uri
            self._rules[descriptor.id] = rule

        loc = diag.location
        result: Dict[str, Any] = {
            "ruleId": descriptor.id,
            "level": diag.severity.sarif_level,
            "message": {"text": diag.message},
        }
        if loc.file:
            region: Dict[str, Any] = {"startLine": loc.line}
            if loc.column:
                region["startColumn"] = loc.column
            if loc.end_line:
                region["endLine"] = loc.end_line
            if loc.end_column:
                region["endColumn"] = loc.end_column
            result["locations"] = [{
                "physicalLocation": {
                    "artifactLocation": {"uri": loc.file},
                    "region": region,
                }
            }]
        self._results.append(result)

    def to_dict(self, tool_name: str, version: str) -> Dict[str, Any]:
        return {
            "$schema": self.SARIF_SCHEMA,
            "version": self.SARIF_VERSION,
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": tool_name,
                            "version": version,
                            "rules": list(self._rules.values()),
                        }
                    },
                    "results": self._results,
                }
            ],
        }

    def to_json(self, tool_name: str, version: str) -> str:
        return json.dumps(self.to_dict(tool_name, version), indent=2)


# ═════════════════════════════════════════════════════════════════════════
#  HTML BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _HtmlBuilder:
    def __init__(self, template_text: Optional[str] = None) -> None:
        self._entries: List[Dict[str, Any]] = []
        self._template = jinja2.Environment(autoescape=True).from_string(
            template_text or _DEFAULT_HTML_TEMPLATE
        )

    def add(self, diag: Diagnostic) -> None:
        loc = diag.location
        self._entries.append({
            "severity": diag.severity.label,
            "rule_id": diag.id,
            "title": diag.descriptor.title,
            "message": diag.message,
            "file": loc.file,
            "line": loc.line,
            "column": loc.column,
        })

    def render(self, tool_name: str) -> str:
        return self._template.render(
            tool_name=tool_name,
            diagnostics=self._entries,
            total=len(self._entries),
        )


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER
# ═════════════════════════════════════════════════════════════════════════

class Reporter:
    """
    Central diagnostic dispatcher.

    Streaming formats write each diagnostic as it is reported; document
    formats (SARIF, HTML) are written by ``finish()``.  The summary line
    goes to ``summary_stream`` unless it is ``None``.
    """

    def __init__(
        self,
        stream: TextIO = sys.stdout,
        output_format: OutputFormat = OutputFormat.PRETTY,
        colour: Optional[bool] = None,
        summary_stream: Optional[TextIO] = sys.stderr,
        sources: Optional[Mapping[str, str]] = None,
        tool_name: str = "routelint",
        tool_version: str = "",
    ) -> None:
        self.stream = stream
        self.output_format = output_format
        self.summary_stream = summary_stream
        self.tool_name = tool_name
        self.tool_version = tool_version
        self.stats = ReporterStats()
        self._diagnostics: List[Diagnostic] = []

        use_colour = colour if colour is not None else hasattr(stream, "isatty") and stream.isatty()
        self._colour = use_colour
        self._renderer: Optional[_Renderer] = None
        self._sarif: Optional[_SarifBuilder] = None
        self._html: Optional[_HtmlBuilder] = None

        if output_format is OutputFormat.PRETTY:
            self._renderer = _TerminalRenderer(stream, sources or {}) if use_colour else _PlainRenderer(stream)
        elif output_format is OutputFormat.GCC:
            self._renderer = _PlainRenderer(stream)
        elif output_format is OutputFormat.JSON:
            self._renderer = _JsonLinesRenderer(stream)
        elif output_format is OutputFormat.SARIF:
            self._sarif = _SarifBuilder()
        else:
            self._html = _HtmlBuilder()

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.finish()

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def report(self, diag: Diagnostic) -> None:
        self.stats.record(diag.severity)
        self._diagnostics.append(diag)
        if self._renderer is not None:
            self._renderer.render(diag)
        if self._sarif is not None:
            self._sarif.add(diag)
        if self._html is not None:
            self._html.add(diag)

    def report_all(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diag in diagnostics:
            self.report(diag)

    def finish(self) -> ReporterStats:
        """Write document formats and the summary line."""
        if self._sarif is not None:
            self.stream.write(self._sarif.to_json(self.tool_name, self.tool_version) + "\n")
        if self._html is not None:
            self.stream.write(self._html.render(self.tool_name))
        self.stream.flush()

        if self.summary_stream is not None:
            summary = self.stats.summary_line()
            if self._colour:
                if self.stats.error:
                    colour = "red"
                elif self.stats.total:
                    colour = "yellow"
                else:
                    colour = "green"
                summary = colored(f"  ╰─ {summary}", colour, attrs=["bold"])
            else:
                summary = f"  {summary}"
            self.summary_stream.write(summary + "\n")
        return self.stats


_DEFAULT_HTML_TEMPLATE = textwrap.dedent("""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{ tool_name }} report</title>
  <style>
    body { font-family: monospace; background: #1e1e2e; color: #cdd6f4; padding: 2rem; }
    .card { background: #313244; border-radius: 8px; padding: 1rem; margin-bottom: 1rem; }
    .sev-error { border-left: 4px solid #f38ba8; }
    .sev-warning { border-left: 4px solid #f9e2af; }
    .sev-information { border-left: 4px solid #89dceb; }
    .sev-hidden { border-left: 4px solid #45475a; }
    .loc { color: #89b4fa; }
    .title { color: #a6adc8; font-size: 0.9em; }
  </style>
</head>
<body>
  <h1>{{ tool_name }} report</h1>
  {% for d in diagnostics %}
  <div class="card sev-{{ d.severity }}">
    <strong>{{ d.severity }}[{{ d.rule_id }}]</strong>
    {% if d.file %}<span class="loc">{{ d.file }}:{{ d.line }}{% if d.column %}:{{ d.column }}{% endif %}</span>{% endif %}
    <div>{{ d.message }}</div>
    <div class="title">{{ d.title }}</div>
  </div>
  {% endfor %}
  <p>{{ total }} diagnostic{{ 's' if total != 1 else '' }} emitted.</p>
</body>
</html>
""")


__all__ = [
    "OutputFormat",
    "ReporterStats",
    "Reporter",
]
