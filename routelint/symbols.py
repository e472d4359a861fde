"""
routelint/symbols.py
════════════════════

Symbol model and the semantic query surface the checkers depend on.

  NamespaceSymbol  — a dotted module path ("routekit.authorization")
  TypeSymbol       — a class
  MethodSymbol     — a function or method (``def`` / ``async def``)
  AttributeData    — one decorator application on a MethodSymbol
  SymbolInfo       — result of binding an expression: a symbol, or a list
                     of candidates when binding was ambiguous
  SemanticModel    — Protocol implemented by ``routelint.binder``;
                     checkers only ever see this protocol

Symbols are created by the binder while a compilation is built and are
read-only once the compilation is complete.
"""

from __future__ import annotations

import ast
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple, Union

from routelint.diagnostics import SourceLocation


class NamespaceSymbol:
    """A dotted namespace.  The global namespace has an empty name."""

    def __init__(self, qualified_name: str) -> None:
        self.qualified_name = qualified_name

    @property
    def name(self) -> str:
        return self.qualified_name.rsplit(".", 1)[-1]

    @property
    def is_global_namespace(self) -> bool:
        return not self.qualified_name

    @property
    def containing_namespace(self) -> Optional[NamespaceSymbol]:
        if self.is_global_namespace:
            return None
        parent, _, _ = self.qualified_name.rpartition(".")
        return NamespaceSymbol(parent)

    def to_display_string(self) -> str:
        return self.qualified_name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NamespaceSymbol) and other.qualified_name == self.qualified_name

    def __hash__(self) -> int:
        return hash(self.qualified_name)

    def __repr__(self) -> str:
        return f"<NamespaceSymbol {self.qualified_name or '<global>'}>"


class TypeSymbol:
    """A class declared in a source module or a reference stub."""

    def __init__(
        self,
        name: str,
        containing_namespace: Optional[NamespaceSymbol],
        containing_type: Optional[TypeSymbol] = None,
        syntax: Optional[ast.ClassDef] = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        self.name = name
        self.containing_namespace = containing_namespace
        self.containing_type = containing_type
        self.syntax = syntax
        self.location = location or SourceLocation()
        self.base_types: List[TypeSymbol] = []

    def to_display_string(self) -> str:
        parts = [self.name]
        outer = self.containing_type
        while outer is not None:
            parts.append(outer.name)
            outer = outer.containing_type
        if self.containing_namespace is not None and not self.containing_namespace.is_global_namespace:
            parts.append(self.containing_namespace.to_display_string())
        return ".".join(reversed(parts))

    def mro(self) -> List[TypeSymbol]:
        """This type followed by its bases, depth-first, left to right."""
        order: List[TypeSymbol] = []
        stack = [self]
        while stack:
            current = stack.pop(0)
            if current in order:
                continue
            order.append(current)
            stack[0:0] = current.base_types
        return order

    def __repr__(self) -> str:
        return f"<TypeSymbol {self.to_display_string()}>"


class MethodSymbol:
    """A function or method."""

    def __init__(
        self,
        name: str,
        containing_namespace: Optional[NamespaceSymbol],
        containing_type: Optional[TypeSymbol] = None,
        syntax: Optional[Union[ast.FunctionDef, ast.AsyncFunctionDef]] = None,
        location: Optional[SourceLocation] = None,
        attributes: Sequence[AttributeData] = (),
    ) -> None:
        self.name = name
        self.containing_namespace = containing_namespace
        self.containing_type = containing_type
        self.syntax = syntax
        self.location = location or SourceLocation()
        self._attributes: List[AttributeData] = list(attributes)

    def get_attributes(self) -> Tuple[AttributeData, ...]:
        """Decorators applied to this method, in declaration order."""
        return tuple(self._attributes)

    def set_attributes(self, attributes: Sequence[AttributeData]) -> None:
        self._attributes = list(attributes)

    def to_display_string(self) -> str:
        if self.containing_type is not None:
            return f"{self.containing_type.to_display_string()}.{self.name}"
        if self.containing_namespace is not None and not self.containing_namespace.is_global_namespace:
            return f"{self.containing_namespace.to_display_string()}.{self.name}"
        return self.name

    def __repr__(self) -> str:
        return f"<MethodSymbol {self.to_display_string()}>"


# What a decorator expression can resolve to.
AttributeClass = Union[TypeSymbol, MethodSymbol]


@dataclass(frozen=True, eq=False)
class AttributeData:
    """
    One decorator application.

    ``attribute_class`` is the class (or decorator function) the decorator
    expression resolves to, or ``None`` when it cannot be resolved.
    """
    attribute_class: Optional[AttributeClass]
    syntax: Optional[ast.expr] = None
    location: SourceLocation = field(default_factory=SourceLocation)

    def __repr__(self) -> str:
        target = self.attribute_class.to_display_string() if self.attribute_class else "?"
        return f"<AttributeData {target}>"


class CandidateReason(enum.Enum):
    NONE = "none"
    AMBIGUOUS = "ambiguous"
    NOT_A_METHOD = "not-a-method"


@dataclass(frozen=True)
class SymbolInfo:
    symbol: Optional[MethodSymbol] = None
    candidate_symbols: Tuple[MethodSymbol, ...] = ()
    candidate_reason: CandidateReason = CandidateReason.NONE

    @classmethod
    def none(cls) -> SymbolInfo:
        return cls()


class SemanticModel(Protocol):
    """Read-only semantic queries over one module."""

    @property
    def file(self) -> str: ...

    def get_symbol_info(self, node: ast.expr) -> SymbolInfo:
        """Bind a call expression to the method it invokes."""
        ...

    def get_declared_symbol(self, node: ast.AST) -> Optional[Union[TypeSymbol, MethodSymbol]]:
        ...


__all__ = [
    "NamespaceSymbol",
    "TypeSymbol",
    "MethodSymbol",
    "AttributeClass",
    "AttributeData",
    "CandidateReason",
    "SymbolInfo",
    "SemanticModel",
]
