"""
routelint/delegate_endpoints.py
═══════════════════════════════

Checks for lambdas registered as route handlers ("delegate endpoints").

MisplacedLambdaAttributeChecker (RL0001)
────────────────────────────────────────
The router reads decorators from the handler it is given.  A handler
written as a lambda that merely forwards to another function hides that
function's decorators from the router:

    class Foo:
        @staticmethod
        @Authorize()                      # ignored by the router
        def hello():
            return "hi"

    app.map_get("/", lambda: Foo.hello())

Pipeline, one lambda at a time:

    match_lambda_shape ─► resolve_target_method ─► classify ─► emit × N
          │                      │                    │
          └──── None ────────────┴──── None / [] ─────┴──► skipped

Only two body shapes are recognised: an expression body that is a call,
and a block whose single statement returns a call.  Anything else is
skipped, so a multi-statement body never yields a finding.
"""

from __future__ import annotations

import ast
import logging
from typing import ClassVar, List, Optional, Tuple

from routelint.checkers import DEFAULT_REGISTRY, Checker, LambdaAnalysisContext
from routelint.config import DEFAULT_RESERVED_NAMESPACE, AnalyzerOptions
from routelint.diagnostics import (
    Diagnostic,
    DiagnosticDescriptor,
    DiagnosticDescriptors,
    SourceLocation,
)
from routelint.operations import (
    BlockOperation,
    InvocationOperation,
    LambdaOperation,
    ReturnOperation,
)
from routelint.symbols import AttributeData, MethodSymbol, SemanticModel

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — SHAPE MATCHING
# ═════════════════════════════════════════════════════════════════════════

def match_lambda_shape(lambda_operation: LambdaOperation) -> Optional[ast.Call]:
    """
    Return the call a lambda body stands for, or ``None``.

    Shape A: the lambda has a single child whose syntax is a call.
    Shape B: the lambda's first child is a block holding a single
    ``return`` of an invocation.
    """
    children = lambda_operation.children
    if not children:
        return None

    first = children[0]
    if len(children) == 1 and isinstance(first.syntax, ast.Call):
        return first.syntax

    if isinstance(first, BlockOperation) and len(first.children) == 1:
        statement = first.children[0]
        if isinstance(statement, ReturnOperation):
            value = statement.returned_value
            if isinstance(value, InvocationOperation) and isinstance(value.syntax, ast.Call):
                return value.syntax

    return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SYMBOL RESOLUTION
# ═════════════════════════════════════════════════════════════════════════

def resolve_target_method(
    target: ast.Call,
    semantic_model: SemanticModel,
) -> Optional[MethodSymbol]:
    """
    The method ``target`` invokes.

    When binding is ambiguous the first candidate is taken, in the order
    the model reports them.
    """
    info = semantic_model.get_symbol_info(target)
    if info.symbol is not None:
        return info.symbol
    if info.candidate_symbols:
        return info.candidate_symbols[0]
    return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — ATTRIBUTE CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════

class AttributeNamespaceClassifier:
    """Selects the decorators that belong to the reserved namespace."""

    def __init__(self, reserved_namespace: str = DEFAULT_RESERVED_NAMESPACE) -> None:
        self.reserved_namespace = reserved_namespace
        self._prefix = reserved_namespace.casefold()

    def is_in_scope(self, attribute: AttributeData) -> bool:
        attribute_class = attribute.attribute_class
        if attribute_class is None:
            return False
        namespace = attribute_class.containing_namespace
        if namespace is None:
            return False
        return namespace.to_display_string().casefold().startswith(self._prefix)

    def classify(self, method: MethodSymbol) -> List[AttributeData]:
        return [a for a in method.get_attributes() if self.is_in_scope(a)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — EMISSION
# ═════════════════════════════════════════════════════════════════════════

def create_misplaced_attribute_diagnostic(
    location: SourceLocation,
    attribute: AttributeData,
    method: MethodSymbol,
) -> Diagnostic:
    if attribute.attribute_class is None:
        raise ValueError(f"decorator on {method.name!r} has no resolved class")
    return Diagnostic.create(
        DiagnosticDescriptors.MISPLACED_LAMBDA_ATTRIBUTE,
        location,
        attribute.attribute_class.name,
        method.name,
    )


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — CHECKER
# ═════════════════════════════════════════════════════════════════════════

class MisplacedLambdaAttributeChecker(Checker):
    """Reserved-namespace decorators on a function a handler lambda calls."""

    name: ClassVar[str] = "misplaced-lambda-attribute"
    description: ClassVar[str] = (
        "Framework decorator placed on a function called from a route "
        "handler lambda instead of on the handler"
    )
    descriptors: ClassVar[Tuple[DiagnosticDescriptor, ...]] = (
        DiagnosticDescriptors.MISPLACED_LAMBDA_ATTRIBUTE,
    )

    def __init__(self) -> None:
        super().__init__()
        self.classifier = AttributeNamespaceClassifier()

    def configure(self, options: AnalyzerOptions) -> None:
        super().configure(options)
        self.classifier = AttributeNamespaceClassifier(options.reserved_namespace)

    def analyze_lambda(self, ctx: LambdaAnalysisContext) -> None:
        lambda_operation = ctx.lambda_operation
        target = match_lambda_shape(lambda_operation)
        if target is None:
            logger.debug("%s: lambda body shape not supported", lambda_operation.location)
            return

        method = resolve_target_method(target, ctx.semantic_model)
        if method is None:
            logger.debug("%s: no method bound to the lambda's call", lambda_operation.location)
            return

        attributes = self.classifier.classify(method)
        if not attributes:
            return

        location = lambda_operation.location
        for attribute in attributes:
            ctx.report_diagnostic(create_misplaced_attribute_diagnostic(location, attribute, method))


DEFAULT_REGISTRY.register(MisplacedLambdaAttributeChecker)


__all__ = [
    "match_lambda_shape",
    "resolve_target_method",
    "AttributeNamespaceClassifier",
    "create_misplaced_attribute_diagnostic",
    "MisplacedLambdaAttributeChecker",
]
