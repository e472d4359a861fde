"""
routelint — route-handler lambda analyzer
=========================================

Finds framework decorators that were placed on a function *called from* a
route-handler lambda instead of on the handler itself.  The router only
reads decorators from the handler it is given, so such decorators are
silently ignored at runtime.

Core modules
------------
operations
    Operation tree over ``ast``; lowering of lambdas.
symbols
    Type, method and attribute symbols; the ``SemanticModel`` protocol.
binder
    Scopes, name binding and import following for one module.
compilation
    Projects, reference stubs and whole-program compilations.
delegate_endpoints
    Lambda shape matching, call resolution, decorator classification and
    the RL0001 checker.
checkers
    Checker base class, registry and runner.
suppressions
    ``# routelint:`` comment directives.
reporter
    Terminal, GCC, JSON lines, SARIF and HTML output.
harness
    ``AnalyzerRunner``: source text in, diagnostics out.
cli
    ``routelint`` command.
"""

__version__ = "0.3.0"

from routelint.errors import (
    CompilationError,
    ConfigurationError,
    ReferenceLoadError,
    RouteLintError,
)
from routelint.diagnostics import (
    Diagnostic,
    DiagnosticDescriptor,
    DiagnosticDescriptors,
    DiagnosticSeverity,
    SourceLocation,
)
from routelint.config import AnalyzerOptions, OutputKind
from routelint.compilation import (
    Compilation,
    CompilationOptions,
    MetadataReference,
    Project,
    SourceDocument,
)
from routelint.checkers import (
    DEFAULT_REGISTRY,
    Checker,
    CheckerRegistry,
    CheckerRunner,
    CheckerRunResults,
    LambdaAnalysisContext,
)
from routelint.delegate_endpoints import (
    AttributeNamespaceClassifier,
    MisplacedLambdaAttributeChecker,
    create_misplaced_attribute_diagnostic,
    match_lambda_shape,
    resolve_target_method,
)
from routelint.suppressions import SuppressionManager
from routelint.harness import AnalyzerRunner

__all__ = [
    "__version__",
    "RouteLintError",
    "CompilationError",
    "ReferenceLoadError",
    "ConfigurationError",
    "Diagnostic",
    "DiagnosticDescriptor",
    "DiagnosticDescriptors",
    "DiagnosticSeverity",
    "SourceLocation",
    "AnalyzerOptions",
    "OutputKind",
    "Compilation",
    "CompilationOptions",
    "MetadataReference",
    "Project",
    "SourceDocument",
    "DEFAULT_REGISTRY",
    "Checker",
    "CheckerRegistry",
    "CheckerRunner",
    "CheckerRunResults",
    "LambdaAnalysisContext",
    "AttributeNamespaceClassifier",
    "MisplacedLambdaAttributeChecker",
    "create_misplaced_attribute_diagnostic",
    "match_lambda_shape",
    "resolve_target_method",
    "SuppressionManager",
    "AnalyzerRunner",
]
