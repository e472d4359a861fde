"""
routelint/operations.py
═══════════════════════

Operation tree: a thin semantic layer over Python's ``ast``.

Only the node shapes the route-handler checkers care about get their own
class; everything else lowers to ``ExpressionOperation`` or
``StatementOperation``.  Each operation keeps the ``ast`` node it came from
(``syntax``) so checkers can hand that node back to the semantic model.

Lowering of a lambda
────────────────────
An expression-bodied lambda has an implicit block and an implicit return:

    lambda: hello()

    LambdaOperation                       syntax = ast.Lambda
    └── BlockOperation      (implicit)    syntax = ast.Call  (the body)
        └── ReturnOperation (implicit)    syntax = ast.Call
            └── InvocationOperation       syntax = ast.Call

A statement body (``lower_body``) produces an explicit block instead, with
one child per statement.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence, Tuple

from routelint.diagnostics import SourceLocation


class OperationKind:
    ANONYMOUS_FUNCTION = "AnonymousFunction"
    BLOCK = "Block"
    RETURN = "Return"
    INVOCATION = "Invocation"
    EXPRESSION_STATEMENT = "ExpressionStatement"
    EXPRESSION = "Expression"
    STATEMENT = "Statement"


@dataclass(frozen=True, eq=False)
class Operation:
    """Base operation node."""
    syntax: ast.AST
    children: Tuple[Operation, ...] = ()
    is_implicit: bool = False
    file: str = ""

    kind: ClassVar[str] = OperationKind.EXPRESSION

    @property
    def location(self) -> SourceLocation:
        return SourceLocation.from_node(self.file, self.syntax)

    def __repr__(self) -> str:
        implicit = " implicit" if self.is_implicit else ""
        return f"<{self.kind}{implicit} {type(self.syntax).__name__} children={len(self.children)}>"


@dataclass(frozen=True, eq=False, repr=False)
class LambdaOperation(Operation):
    kind: ClassVar[str] = OperationKind.ANONYMOUS_FUNCTION


@dataclass(frozen=True, eq=False, repr=False)
class BlockOperation(Operation):
    kind: ClassVar[str] = OperationKind.BLOCK


@dataclass(frozen=True, eq=False, repr=False)
class ReturnOperation(Operation):
    kind: ClassVar[str] = OperationKind.RETURN

    @property
    def returned_value(self) -> Optional[Operation]:
        return self.children[0] if self.children else None


@dataclass(frozen=True, eq=False, repr=False)
class InvocationOperation(Operation):
    """A call.  ``children`` are the lowered argument values."""
    kind: ClassVar[str] = OperationKind.INVOCATION


@dataclass(frozen=True, eq=False, repr=False)
class ExpressionStatementOperation(Operation):
    kind: ClassVar[str] = OperationKind.EXPRESSION_STATEMENT

    @property
    def operation(self) -> Optional[Operation]:
        return self.children[0] if self.children else None


@dataclass(frozen=True, eq=False, repr=False)
class ExpressionOperation(Operation):
    kind: ClassVar[str] = OperationKind.EXPRESSION


@dataclass(frozen=True, eq=False, repr=False)
class StatementOperation(Operation):
    kind: ClassVar[str] = OperationKind.STATEMENT


# ═════════════════════════════════════════════════════════════════════════
#  LOWERING
# ═════════════════════════════════════════════════════════════════════════

def lower_expression(node: ast.expr, file: str = "") -> Operation:
    if isinstance(node, ast.Call):
        args = [lower_expression(a, file) for a in node.args]
        args.extend(lower_expression(kw.value, file) for kw in node.keywords)
        return InvocationOperation(syntax=node, children=tuple(args), file=file)
    if isinstance(node, ast.Lambda):
        return lower_lambda(node, file)
    return ExpressionOperation(syntax=node, file=file)


def lower_statement(node: ast.stmt, file: str = "") -> Operation:
    if isinstance(node, ast.Return):
        value = (lower_expression(node.value, file),) if node.value is not None else ()
        return ReturnOperation(syntax=node, children=value, file=file)
    if isinstance(node, ast.Expr):
        return ExpressionStatementOperation(
            syntax=node, children=(lower_expression(node.value, file),), file=file,
        )
    return StatementOperation(syntax=node, file=file)


def lower_body(
    owner: ast.AST,
    statements: Sequence[ast.stmt],
    file: str = "",
) -> BlockOperation:
    """Lower a statement list into an explicit block anchored at ``owner``."""
    return BlockOperation(
        syntax=owner,
        children=tuple(lower_statement(s, file) for s in statements),
        file=file,
    )


def lower_lambda(node: ast.Lambda, file: str = "") -> LambdaOperation:
    body = node.body
    implicit_return = ReturnOperation(
        syntax=body,
        children=(lower_expression(body, file),),
        is_implicit=True,
        file=file,
    )
    block = BlockOperation(syntax=body, children=(implicit_return,), is_implicit=True, file=file)
    return LambdaOperation(syntax=node, children=(block,), file=file)


__all__ = [
    "OperationKind",
    "Operation",
    "LambdaOperation",
    "BlockOperation",
    "ReturnOperation",
    "InvocationOperation",
    "ExpressionStatementOperation",
    "ExpressionOperation",
    "StatementOperation",
    "lower_expression",
    "lower_statement",
    "lower_body",
    "lower_lambda",
]
