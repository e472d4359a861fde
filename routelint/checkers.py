"""
routelint/checkers.py
═════════════════════

Checker framework: finds route registrations in a compilation and hands
every handler lambda to the registered checkers.

Architecture
────────────

  ┌──────────────────────────────────────────────────────────┐
  │                     CheckerRunner                        │
  │                                                          │
  │   for each source module (document order, optionally     │
  │   on a thread pool):                                     │
  │     RegistrationCallFinder ─► app.map_get("/", lambda)   │
  │                                   │                      │
  │                  lower_lambda ◄───┘                      │
  │                      │                                   │
  │     ┌────────────────▼──────────────────┐                │
  │     │ Checker.analyze_lambda(ctx) × N   │                │
  │     └────────────────┬──────────────────┘                │
  │                      │ ctx.report_diagnostic             │
  │   ┌──────────────────▼───────────────────────────────┐   │
  │   │ rule enablement ─► severity ─► SuppressionManager │   │
  │   └──────────────────┬───────────────────────────────┘   │
  │                      ▼                                   │
  │              CheckerRunResults (sorted)                  │
  └──────────────────────────────────────────────────────────┘

Each lambda is handed to each checker exactly once.  A checker that raises
does not stop the run; the failure is logged and reported as RL9000 at the
lambda.
"""

from __future__ import annotations

import ast
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from routelint.binder import ModuleBinder
from routelint.compilation import Compilation
from routelint.config import AnalyzerOptions
from routelint.diagnostics import (
    Diagnostic,
    DiagnosticDescriptor,
    DiagnosticDescriptors,
    DiagnosticSeverity,
)
from routelint.operations import LambdaOperation, lower_lambda
from routelint.suppressions import SuppressionManager
from routelint.symbols import SemanticModel

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class LambdaAnalysisContext:
    """
    Everything a checker sees for one handler lambda.

    Attributes
    ----------
    invocation       : the registration call (``app.map_get(...)``)
    lambda_operation : the lowered handler lambda
    semantic_model   : semantic queries for the module holding the call
    options          : analyzer options in effect
    """
    invocation: ast.Call
    lambda_operation: LambdaOperation
    semantic_model: SemanticModel
    options: AnalyzerOptions
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def report_diagnostic(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)


class Checker(ABC):
    """
    Abstract base class for lambda checkers.

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``descriptors``
      - Implement ``analyze_lambda()``; report through
        ``ctx.report_diagnostic``
      - Optionally override ``configure()`` to read options

    ``analyze_lambda`` may be called from several threads at once and must
    not keep per-lambda state on the instance.
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    descriptors: ClassVar[Tuple[DiagnosticDescriptor, ...]] = ()

    def __init__(self) -> None:
        self.options = AnalyzerOptions()

    @classmethod
    def rule_ids(cls) -> FrozenSet[str]:
        return frozenset(d.id for d in cls.descriptors)

    def configure(self, options: AnalyzerOptions) -> None:
        """Called once before any lambda is analyzed."""
        self.options = options

    @abstractmethod
    def analyze_lambda(self, ctx: LambdaAnalysisContext) -> None:
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    Registry of available checkers.

    Usage
    -----
    >>> registry = CheckerRegistry()
    >>> registry.register(MisplacedLambdaAttributeChecker)
    >>> checkers = registry.get_enabled()
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}
        self._disabled: Set[str] = set()

    def register(self, checker_cls: Type[Checker]) -> Type[Checker]:
        self._checkers[checker_cls.name] = checker_cls
        return checker_cls

    def unregister(self, name: str) -> None:
        self._checkers.pop(name, None)

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def enable(self, name: str) -> None:
        self._disabled.discard(name)

    def get_all(self) -> List[Type[Checker]]:
        return list(self._checkers.values())

    def get_enabled(self) -> List[Type[Checker]]:
        return [
            cls for name, cls in self._checkers.items()
            if name not in self._disabled
        ]

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    def filter_by_rule_id(self, rule_id: str) -> List[Type[Checker]]:
        """Checkers that can produce ``rule_id``."""
        return [cls for cls in self._checkers.values() if rule_id in cls.rule_ids()]

    def descriptors(self) -> List[DiagnosticDescriptor]:
        """Every rule the registered checkers can report, plus RL9000."""
        seen: Dict[str, DiagnosticDescriptor] = {}
        for cls in self._checkers.values():
            for descriptor in cls.descriptors:
                seen.setdefault(descriptor.id, descriptor)
        internal = DiagnosticDescriptors.ANALYZER_INTERNAL_ERROR
        seen.setdefault(internal.id, internal)
        return sorted(seen.values(), key=lambda d: d.id)

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


# Built-in checkers register themselves here on import.
DEFAULT_REGISTRY = CheckerRegistry()


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — REGISTRATION DISCOVERY
# ═════════════════════════════════════════════════════════════════════════

def callee_name(call: ast.Call) -> str:
    func = call.func
    if isinstance(func, ast.Attribute):
        return func.attr
    if isinstance(func, ast.Name):
        return func.id
    return ""


def handler_lambdas(call: ast.Call) -> Iterator[ast.Lambda]:
    """Lambda arguments of ``call``, positional first, then keywords."""
    for arg in call.args:
        if isinstance(arg, ast.Lambda):
            yield arg
    for keyword in call.keywords:
        if isinstance(keyword.value, ast.Lambda):
            yield keyword.value


class RegistrationCallFinder(ast.NodeVisitor):
    """Collects route registration calls in source order."""

    def __init__(self, registration_methods: FrozenSet[str]) -> None:
        self.registration_methods = registration_methods
        self.calls: List[ast.Call] = []

    def visit_Call(self, node: ast.Call) -> None:
        if callee_name(node) in self.registration_methods:
            self.calls.append(node)
        self.generic_visit(node)

    @classmethod
    def find(cls, tree: ast.AST, registration_methods: FrozenSet[str]) -> List[ast.Call]:
        finder = cls(registration_methods)
        finder.visit(tree)
        return finder.calls


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """
    Aggregate results of one run.

    Attributes
    ----------
    diagnostics            : all reported diagnostics, in reporting order
    diagnostics_by_checker : diagnostics grouped by checker name
    stats                  : timing and counting statistics
    checker_names          : names of the checkers that ran
    suppressed_count       : diagnostics dropped by suppressions
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)
    suppressed_count: int = 0

    @property
    def error_count(self) -> int:
        return len(self.by_severity(DiagnosticSeverity.ERROR))

    @property
    def warning_count(self) -> int:
        return len(self.by_severity(DiagnosticSeverity.WARNING))

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_severity(self, severity: DiagnosticSeverity) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_rule(self, rule_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.id == rule_id]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        lines = [
            f"Checker run complete: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings"
            f", {self.suppressed_count} suppressed)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0.0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


# (checker name, diagnostic) pairs produced for one module
_Findings = List[Tuple[str, Diagnostic]]


class CheckerRunner:
    """
    Runs the registered checkers over every handler lambda of a compilation.

    Usage
    -----
    >>> runner = CheckerRunner(options=AnalyzerOptions())
    >>> results = runner.run(compilation)
    >>> print(results.summary())

    Parameters for constructor
    ─────────────────────────
    registry     : CheckerRegistry — source of checker classes
    suppressions : SuppressionManager — pre-loaded suppression rules
    options      : AnalyzerOptions
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[AnalyzerOptions] = None,
    ) -> None:
        self.registry = registry or DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or AnalyzerOptions()

    def run(
        self,
        compilation: Compilation,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """
        Analyze every source module of ``compilation``.

        Parameters
        ----------
        compilation : a fully bound Compilation
        checkers    : names of checkers to run (None = all enabled)
        """
        results = CheckerRunResults()
        instances = self._instantiate(checkers)
        results.checker_names = [c.name for c in instances]

        for document in compilation.project.documents:
            self.suppressions.load_source(document.name, document.text)

        modules = compilation.source_modules
        t0 = time.monotonic()
        if self.options.concurrent and len(modules) > 1:
            with ThreadPoolExecutor(max_workers=self.options.max_workers) as pool:
                per_module = list(pool.map(lambda m: self._analyze_module(m, instances), modules))
        else:
            per_module = [self._analyze_module(m, instances) for m in modules]
        results.stats["elapsed_ms"] = (time.monotonic() - t0) * 1000.0

        order = {m.file: index for index, m in enumerate(modules)}
        findings = [pair for module_findings in per_module for pair in module_findings]
        findings.sort(key=lambda pair: (order.get(pair[1].location.file, len(order)),) + pair[1].location.sort_key())

        for checker_name, diagnostic in findings:
            if not self.options.is_rule_enabled(diagnostic.id):
                continue
            diagnostic = diagnostic.with_severity(self.options.effective_severity(diagnostic))
            if self.suppressions.is_suppressed(diagnostic):
                results.suppressed_count += 1
                continue
            results.diagnostics.append(diagnostic)
            results.diagnostics_by_checker[checker_name].append(diagnostic)

        logger.info(
            "analyzed %d modules: %d diagnostics, %d suppressed",
            len(modules), results.total_count, results.suppressed_count,
        )
        return results

    def _instantiate(self, names: Optional[Sequence[str]]) -> List[Checker]:
        if names is not None:
            classes: List[Type[Checker]] = []
            for name in names:
                cls = self.registry.get_by_name(name)
                if cls is None:
                    logger.warning("unknown checker %r skipped", name)
                    continue
                classes.append(cls)
        else:
            classes = self.registry.get_enabled()

        instances = []
        for cls in classes:
            checker = cls()
            checker.configure(self.options)
            instances.append(checker)
        return instances

    def _analyze_module(self, module: ModuleBinder, checkers: Sequence[Checker]) -> _Findings:
        findings: _Findings = []
        calls = RegistrationCallFinder.find(module.tree, self.options.registration_methods)
        for call in calls:
            for node in handler_lambdas(call):
                lambda_operation = lower_lambda(node, module.file)
                for checker in checkers:
                    findings.extend(
                        (checker.name, d)
                        for d in self._run_checker(checker, call, lambda_operation, module)
                    )
        logger.debug("%s: %d registration calls, %d findings", module.file, len(calls), len(findings))
        return findings

    def _run_checker(
        self,
        checker: Checker,
        call: ast.Call,
        lambda_operation: LambdaOperation,
        module: ModuleBinder,
    ) -> List[Diagnostic]:
        ctx = LambdaAnalysisContext(
            invocation=call,
            lambda_operation=lambda_operation,
            semantic_model=module,
            options=self.options,
        )
        try:
            checker.analyze_lambda(ctx)
        except Exception as exc:
            logger.exception("checker %s failed at %s", checker.name, lambda_operation.location)
            return [Diagnostic.create(
                DiagnosticDescriptors.ANALYZER_INTERNAL_ERROR,
                lambda_operation.location,
                checker.name,
                str(exc) or type(exc).__name__,
            )]
        return ctx.diagnostics


__all__ = [
    "LambdaAnalysisContext",
    "Checker",
    "CheckerRegistry",
    "DEFAULT_REGISTRY",
    "callee_name",
    "handler_lambdas",
    "RegistrationCallFinder",
    "CheckerRunResults",
    "CheckerRunner",
]
