"""routelint/cli.py — command-line entry point.

Usage examples
--------------
    # Check a project, stubs for the router in ./stubs
    routelint src/ --reference-dir stubs

    # Another framework prefix, extra registration method
    routelint app.py --reserved-namespace acme.web --registration-method route

    # SARIF for code scanning
    routelint src/ --format sarif --output routelint.sarif

    # List rules and exit
    routelint --list-rules

Exit codes
----------
    0   No diagnostics with severity ERROR.
    1   One or more diagnostics with severity ERROR were emitted.
    2   Infrastructure failure (unreadable or unparsable input, bad
        reference stub, invalid options).

The module doubles as ``python -m routelint`` via ``routelint/__main__.py``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from routelint import __version__
from routelint.checkers import DEFAULT_REGISTRY
from routelint.compilation import Project, SourceDocument
from routelint.config import ENV_REFERENCE_DIR, AnalyzerOptions, OutputKind
from routelint.errors import ConfigurationError, RouteLintError
from routelint.harness import AnalyzerRunner, add_references_in_directory
from routelint.reporter import OutputFormat, Reporter

_log = logging.getLogger("routelint")

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``routelint`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("routelint")
    root.setLevel(level)
    root.handlers[:] = [handler]


def _collect_sources(raw_paths: Sequence[str]) -> List[SourceDocument]:
    """Expand files and directories into documents, in a stable order.

    Module names are computed relative to the directory argument, or to
    the file's parent for file arguments.
    """
    documents: List[SourceDocument] = []
    seen = set()
    for raw in raw_paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            root = path
            files = sorted(p for p in path.rglob("*.py") if p.is_file())
        elif path.is_file():
            root = path.parent
            files = [path]
        else:
            raise ConfigurationError("path", "no such file or directory", value=raw)
        for file in files:
            key = file.resolve()
            if key in seen:
                continue
            seen.add(key)
            documents.append(SourceDocument.from_path(file, root))
    return documents


def _parse_severity_overrides(values: Sequence[str]) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for value in values:
        rule_id, sep, level = value.partition("=")
        if not sep or not rule_id.strip() or not level.strip():
            raise ConfigurationError("severity", "expected RULE=LEVEL", value=value)
        overrides[rule_id.strip().upper()] = level.strip()
    return overrides


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → stdout; otherwise open the path for writing."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _list_rules(stream: TextIO) -> None:
    for descriptor in DEFAULT_REGISTRY.descriptors():
        stream.write(
            f"  {descriptor.id:8s} {descriptor.default_severity.label:12s} {descriptor.title}\n"
        )
    for name in DEFAULT_REGISTRY.names:
        cls = DEFAULT_REGISTRY.get_by_name(name)
        desc = cls.description if cls else ""
        stream.write(f"\n  checker {name}: {desc}\n")


# ===========================================================================
# Command
# ===========================================================================

def cmd_check(args: argparse.Namespace) -> int:
    """Analyze the given sources and report diagnostics."""
    base = AnalyzerOptions.from_env()
    options = base.merged(
        reserved_namespace=args.reserved_namespace,
        registration_methods=(
            base.registration_methods | frozenset(args.registration_method)
            if args.registration_method else None
        ),
        concurrent=(args.jobs > 1) if args.jobs is not None else None,
        max_workers=args.jobs,
        severity_overrides=_parse_severity_overrides(args.severity) if args.severity else None,
        warnings_as_errors=True if args.warnings_as_errors else None,
    )

    documents = _collect_sources(args.paths)
    if not documents:
        _log.warning("no Python sources found")
    project = Project(name="routelint", documents=tuple(documents))

    reference_dirs = list(args.reference_dir)
    if not reference_dirs:
        configured = os.environ.get(ENV_REFERENCE_DIR, "").strip()
        if configured:
            reference_dirs.append(configured)
    for directory in reference_dirs:
        project = add_references_in_directory(project, Path(directory))
    _log.info(
        "%d source documents, %d references",
        len(project.documents), len(project.metadata_references),
    )

    runner = AnalyzerRunner(
        output_kind=OutputKind.from_string(args.output_kind),
        options=options,
        global_suppressions=args.suppress,
    )
    results = asyncio.run(runner.analyze(project))

    out = _open_output(args.output)
    try:
        reporter = Reporter(
            stream=out,
            output_format=OutputFormat.from_string(args.format),
            colour=False if args.no_color else None,
            summary_stream=sys.stderr,
            sources={d.name: d.text for d in project.documents},
            tool_version=__version__,
        )
        reporter.report_all(results.diagnostics)
        stats = reporter.finish()
    finally:
        if out is not sys.stdout:
            out.close()

    return EXIT_ERROR if stats.error > 0 else EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routelint",
        description=(
            "Find framework decorators placed on functions called from\n"
            "route-handler lambdas, where the router never sees them."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(f"""\
            environment:
              ROUTELINT_RESERVED_NAMESPACE    default for --reserved-namespace
              ROUTELINT_REGISTRATION_METHODS  comma separated registration methods
              ROUTELINT_JOBS                  default for --jobs
              {ENV_REFERENCE_DIR}         default for --reference-dir
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        metavar="PATH",
        help="Python files or directories to check.",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="List rules and checkers and exit.",
    )

    g = parser.add_argument_group("analysis")
    g.add_argument(
        "--reserved-namespace",
        default=None,
        metavar="NS",
        help="Dotted prefix of the framework's decorator modules (default: routekit).",
    )
    g.add_argument(
        "--registration-method",
        action="append",
        default=[],
        metavar="NAME",
        help="Callee name that registers a route handler (repeatable).",
    )
    g.add_argument(
        "--reference-dir",
        action="append",
        default=[],
        metavar="DIR",
        help="Directory of .pyi reference stubs (repeatable).",
    )
    g.add_argument(
        "--output-kind",
        choices=[k.value for k in OutputKind],
        default=OutputKind.LIBRARY.value,
        help="Treat sources as a library or a console application (first file is __main__).",
    )
    g.add_argument(
        "-j", "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Analyze modules on N threads.",
    )

    g = parser.add_argument_group("diagnostics")
    g.add_argument(
        "--suppress",
        action="append",
        default=[],
        metavar="RULE",
        help="Suppress a rule everywhere (repeatable).",
    )
    g.add_argument(
        "--severity",
        action="append",
        default=[],
        metavar="RULE=LEVEL",
        help="Override a rule's severity; LEVEL 'none' disables it (repeatable).",
    )
    g.add_argument(
        "--warnings-as-errors",
        action="store_true",
        help="Report every warning as an error.",
    )

    g = parser.add_argument_group("output")
    g.add_argument(
        "-f", "--format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.PRETTY.value,
        help="Output format (default: pretty).",
    )
    g.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    g.add_argument(
        "--no-color",
        action="store_true",
        help="Disable coloured output.",
    )
    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the routelint CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if args.list_rules:
        _list_rules(sys.stdout)
        return EXIT_OK

    if not args.paths:
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return cmd_check(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except RouteLintError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
