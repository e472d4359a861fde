"""
routelint/binder.py
═══════════════════

Name binding for one module, and the ``SemanticModel`` implementation.

Binding runs in three passes, driven by ``routelint.compilation``:

  1. ``declare()``          — walk the module once, build the scope tree,
                              create Type/Method symbols, record every
                              name binding (defs, classes, imports,
                              assignments, parameters)
  2. ``bind_base_types()``  — resolve class bases (needs every module
                              declared, bases may be imported)
  3. ``bind_attributes()``  — resolve each decorator to the class or
                              function it names

After pass 3 the binder is read-only; ``get_symbol_info`` only reads, so
models can be queried from several threads at once.

Resolution rules
────────────────
  • Names follow LEGB.  A class body is visible only to code directly in
    it, never to nested functions or lambdas.
  • A name bound once resolves to that binding.  A name bound several
    times in its owning scope is ambiguous; the binder then reports the
    function definitions among the bindings as candidates, in source
    order.
  • Imports (absolute, relative, ``*``) are followed across the
    compilation.  Modules outside the compilation resolve to nothing.
  • ``self`` / ``cls`` in methods resolve to the enclosing class; calling
    a class produces an instance of it.
  • Builtins are not modelled.
"""

from __future__ import annotations

import ast
import enum
import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from routelint.diagnostics import SourceLocation
from routelint.symbols import (
    AttributeData,
    CandidateReason,
    MethodSymbol,
    NamespaceSymbol,
    SymbolInfo,
    TypeSymbol,
)

if TYPE_CHECKING:
    from routelint.compilation import Compilation

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — SCOPES & BINDINGS
# ═════════════════════════════════════════════════════════════════════════

class ScopeKind(enum.Enum):
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"
    LAMBDA = "lambda"
    COMPREHENSION = "comprehension"


class BindingKind(enum.Enum):
    DEFINITION = "definition"        # def / class
    IMPORT_MODULE = "import-module"  # import a.b [as x]
    IMPORT_FROM = "import-from"      # from a import b [as x]
    PARAMETER = "parameter"
    VALUE = "value"                  # any other store


@dataclass(frozen=True)
class ModuleRef:
    """A module (or package prefix) used as a value."""
    name: str


@dataclass(frozen=True, eq=False)
class InstanceRef:
    """An instance of a known class."""
    type: TypeSymbol


Value = Union[MethodSymbol, TypeSymbol, ModuleRef, InstanceRef]
# One entry per binding considered; None means "bound, but unknown".
Resolution = List[Optional[Value]]


@dataclass(eq=False)
class Binding:
    name: str
    kind: BindingKind
    node: ast.AST
    symbol: Optional[Union[TypeSymbol, MethodSymbol]] = None
    module: str = ""
    member: str = ""
    value: Optional[Value] = None


@dataclass(eq=False)
class Scope:
    kind: ScopeKind
    node: ast.AST
    parent: Optional[Scope] = None
    owner_type: Optional[TypeSymbol] = None
    bindings: Dict[str, List[Binding]] = field(default_factory=dict)
    star_imports: List[str] = field(default_factory=list)
    global_names: Set[str] = field(default_factory=set)

    def bind(self, binding: Binding) -> None:
        self.bindings.setdefault(binding.name, []).append(binding)

    @property
    def module_scope(self) -> Scope:
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — DECLARATION PASS
# ═════════════════════════════════════════════════════════════════════════

class _Declarer(ast.NodeVisitor):
    """Single walk over a module building scopes and symbols."""

    def __init__(self, binder: ModuleBinder) -> None:
        self.binder = binder
        self.scope = binder.scope

    # ── helpers ──────────────────────────────────────────────────────

    def _location(self, node: ast.AST) -> SourceLocation:
        return SourceLocation.from_node(self.binder.file, node)

    def _push(self, kind: ScopeKind, node: ast.AST, owner_type: Optional[TypeSymbol] = None) -> Scope:
        scope = Scope(kind=kind, node=node, parent=self.scope, owner_type=owner_type)
        self.binder.scope_of[node] = scope
        self.scope = scope
        return scope

    def _pop(self) -> None:
        assert self.scope.parent is not None
        self.scope = self.scope.parent

    def _target_scope(self, name: str) -> Scope:
        """Scope a store to ``name`` lands in, honouring ``global``."""
        if name in self.scope.global_names:
            return self.scope.module_scope
        return self.scope

    def _visit_all(self, nodes: Iterable[Optional[ast.AST]]) -> None:
        for node in nodes:
            if node is not None:
                self.visit(node)

    def _bind_parameters(self, args: ast.arguments, self_value: Optional[Value] = None) -> None:
        positional = list(args.posonlyargs) + list(args.args)
        params = positional + list(args.kwonlyargs)
        if args.vararg is not None:
            params.append(args.vararg)
        if args.kwarg is not None:
            params.append(args.kwarg)
        for arg in params:
            value = self_value if positional and arg is positional[0] else None
            self.scope.bind(Binding(arg.arg, BindingKind.PARAMETER, arg, value=value))

    def _visit_signature(self, args: ast.arguments) -> None:
        self._visit_all(args.defaults)
        self._visit_all(args.kw_defaults)
        for arg in list(args.posonlyargs) + list(args.args) + list(args.kwonlyargs):
            self._visit_all([arg.annotation])
        for arg in (args.vararg, args.kwarg):
            if arg is not None:
                self._visit_all([arg.annotation])

    # ── definitions ──────────────────────────────────────────────────

    def _visit_function(self, node: FunctionNode) -> None:
        self._visit_all(node.decorator_list)
        self._visit_signature(node.args)
        self._visit_all([node.returns])

        enclosing = self.scope
        owner = enclosing.owner_type if enclosing.kind is ScopeKind.CLASS else None
        symbol = MethodSymbol(
            name=node.name,
            containing_namespace=self.binder.namespace,
            containing_type=owner,
            syntax=node,
            location=self._location(node),
        )
        self._target_scope(node.name).bind(Binding(node.name, BindingKind.DEFINITION, node, symbol=symbol))
        self.binder.declared[node] = symbol
        self.binder.methods.append((symbol, enclosing))

        self_value: Optional[Value] = None
        if owner is not None:
            decorator_names = {_simple_name(d) for d in node.decorator_list}
            if "classmethod" in decorator_names:
                self_value = owner
            elif "staticmethod" not in decorator_names:
                self_value = InstanceRef(owner)

        self._push(ScopeKind.FUNCTION, node)
        self._bind_parameters(node.args, self_value)
        self._visit_all(node.body)
        self._pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._visit_all(node.decorator_list)
        self._visit_all(node.bases)
        self._visit_all(kw.value for kw in node.keywords)

        enclosing = self.scope
        outer = enclosing.owner_type if enclosing.kind is ScopeKind.CLASS else None
        symbol = TypeSymbol(
            name=node.name,
            containing_namespace=self.binder.namespace,
            containing_type=outer,
            syntax=node,
            location=self._location(node),
        )
        self._target_scope(node.name).bind(Binding(node.name, BindingKind.DEFINITION, node, symbol=symbol))
        self.binder.declared[node] = symbol
        self.binder.types.append((symbol, enclosing))

        scope = self._push(ScopeKind.CLASS, node, owner_type=symbol)
        self.binder.class_scopes[symbol] = scope
        self._visit_all(node.body)
        self._pop()

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._visit_signature(node.args)
        self._push(ScopeKind.LAMBDA, node)
        self._bind_parameters(node.args)
        self.visit(node.body)
        self._pop()

    def _visit_comprehension(self, node: ast.AST, elements: Sequence[ast.AST]) -> None:
        generators: List[ast.comprehension] = getattr(node, "generators")
        # The outermost iterable is evaluated in the enclosing scope.
        self.visit(generators[0].iter)
        self._push(ScopeKind.COMPREHENSION, node)
        for index, gen in enumerate(generators):
            self.visit(gen.target)
            if index:
                self.visit(gen.iter)
            self._visit_all(gen.ifs)
        self._visit_all(elements)
        self._pop()

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self._visit_comprehension(node, [node.elt])

    def visit_SetComp(self, node: ast.SetComp) -> None:
        self._visit_comprehension(node, [node.elt])

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self._visit_comprehension(node, [node.elt])

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._visit_comprehension(node, [node.key, node.value])

    # ── imports ──────────────────────────────────────────────────────

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.scope.bind(Binding(alias.asname, BindingKind.IMPORT_MODULE, node, module=alias.name))
            else:
                top = alias.name.split(".", 1)[0]
                self.scope.bind(Binding(top, BindingKind.IMPORT_MODULE, node, module=top))

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = self.binder.resolve_relative_module(node.module, node.level)
        for alias in node.names:
            if alias.name == "*":
                self.scope.star_imports.append(module)
                continue
            self.scope.bind(Binding(
                alias.asname or alias.name,
                BindingKind.IMPORT_FROM,
                node,
                module=module,
                member=alias.name,
            ))

    # ── other stores ─────────────────────────────────────────────────

    def visit_Global(self, node: ast.Global) -> None:
        self.scope.global_names.update(node.names)

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            self._target_scope(node.id).bind(Binding(node.id, BindingKind.VALUE, node))

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.scope.bind(Binding(node.name, BindingKind.VALUE, node))
        self.generic_visit(node)

    def visit_MatchAs(self, node: ast.MatchAs) -> None:
        if node.name:
            self.scope.bind(Binding(node.name, BindingKind.VALUE, node))
        self.generic_visit(node)

    def visit_MatchStar(self, node: ast.MatchStar) -> None:
        if node.name:
            self.scope.bind(Binding(node.name, BindingKind.VALUE, node))

    def visit_Call(self, node: ast.Call) -> None:
        self.binder.scope_of[node] = self.scope
        self.generic_visit(node)


def _simple_name(expr: ast.expr) -> str:
    if isinstance(expr, ast.Call):
        expr = expr.func
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return expr.attr
    return ""


def _unique(values: Iterable[Optional[Value]]) -> Resolution:
    out: Resolution = []
    for v in values:
        if not any(v is seen or v == seen for seen in out):
            out.append(v)
    return out


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — MODULE BINDER / SEMANTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class ModuleBinder:
    """
    Binds one module of a compilation and answers semantic queries on it.

    Implements ``routelint.symbols.SemanticModel``.
    """

    def __init__(
        self,
        compilation: Compilation,
        module_name: str,
        file: str,
        tree: ast.Module,
        is_package: bool = False,
    ) -> None:
        self.compilation = compilation
        self.module_name = module_name
        self._file = file
        self.tree = tree
        self.is_package = is_package
        self.namespace = NamespaceSymbol(module_name)
        self.scope = Scope(kind=ScopeKind.MODULE, node=tree)

        self.scope_of: Dict[ast.AST, Scope] = {tree: self.scope}
        self.declared: Dict[ast.AST, Union[TypeSymbol, MethodSymbol]] = {}
        self.methods: List[Tuple[MethodSymbol, Scope]] = []
        self.types: List[Tuple[TypeSymbol, Scope]] = []
        self.class_scopes: Dict[TypeSymbol, Scope] = {}

    @property
    def file(self) -> str:
        return self._file

    # ── passes ───────────────────────────────────────────────────────

    def declare(self) -> None:
        _Declarer(self).visit(self.tree)
        logger.debug(
            "declared %s: %d types, %d methods",
            self.module_name, len(self.types), len(self.methods),
        )

    def bind_base_types(self) -> None:
        for symbol, scope in self.types:
            assert symbol.syntax is not None
            for base in symbol.syntax.bases:
                resolved = [v for v in self.resolve_expression(base, scope) if isinstance(v, TypeSymbol)]
                if resolved and resolved[0] is not symbol:
                    symbol.base_types.append(resolved[0])

    def bind_attributes(self) -> None:
        for symbol, scope in self.methods:
            assert symbol.syntax is not None
            symbol.set_attributes([
                self._bind_decorator(decorator, scope)
                for decorator in symbol.syntax.decorator_list
            ])

    def _bind_decorator(self, decorator: ast.expr, scope: Scope) -> AttributeData:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        attribute_class: Optional[Union[TypeSymbol, MethodSymbol]] = None
        for value in self.resolve_expression(target, scope):
            if isinstance(value, (TypeSymbol, MethodSymbol)):
                attribute_class = value
                break
        return AttributeData(
            attribute_class=attribute_class,
            syntax=decorator,
            location=SourceLocation.from_node(self.file, decorator),
        )

    # ── SemanticModel ────────────────────────────────────────────────

    def get_symbol_info(self, node: ast.expr) -> SymbolInfo:
        if not isinstance(node, ast.Call):
            return SymbolInfo.none()
        scope = self.scope_of.get(node)
        if scope is None:
            return SymbolInfo.none()

        values = self.resolve_expression(node.func, scope)
        distinct = _unique(values)
        methods = tuple(v for v in distinct if isinstance(v, MethodSymbol))

        if len(distinct) == 1:
            if methods:
                return SymbolInfo(symbol=methods[0])
            if distinct[0] is None:
                return SymbolInfo.none()
            return SymbolInfo(candidate_reason=CandidateReason.NOT_A_METHOD)
        if methods:
            return SymbolInfo(candidate_symbols=methods, candidate_reason=CandidateReason.AMBIGUOUS)
        return SymbolInfo.none()

    def get_declared_symbol(self, node: ast.AST) -> Optional[Union[TypeSymbol, MethodSymbol]]:
        return self.declared.get(node)

    def lookup(self, name: str, node: Optional[ast.AST] = None) -> Resolution:
        """Resolve ``name`` as seen from the scope owning ``node``."""
        scope = self.scope_of.get(node, self.scope) if node is not None else self.scope
        return self.resolve_name(name, scope)

    # ── resolution ───────────────────────────────────────────────────

    def resolve_relative_module(self, module: Optional[str], level: int) -> str:
        if not level:
            return module or ""
        parts = self.module_name.split(".") if self.module_name else []
        drop = level - 1 if self.is_package else level
        base = parts[: max(len(parts) - drop, 0)]
        if module:
            base.append(module)
        return ".".join(base)

    def resolve_expression(
        self,
        expr: ast.expr,
        scope: Scope,
        seen: FrozenSet[Tuple[str, str]] = frozenset(),
    ) -> Resolution:
        if isinstance(expr, ast.Name):
            return self.resolve_name(expr.id, scope, seen)
        if isinstance(expr, ast.Attribute):
            out: Resolution = []
            for base in self.resolve_expression(expr.value, scope, seen):
                out.extend(self.compilation.resolve_member(base, expr.attr, seen))
            return out or [None]
        if isinstance(expr, ast.Call):
            return [
                InstanceRef(v) if isinstance(v, TypeSymbol) else None
                for v in self.resolve_expression(expr.func, scope, seen)
            ]
        return [None]

    def resolve_name(
        self,
        name: str,
        scope: Scope,
        seen: FrozenSet[Tuple[str, str]] = frozenset(),
    ) -> Resolution:
        current: Optional[Scope] = scope
        if name in scope.global_names:
            current = scope.module_scope
        first = True
        while current is not None:
            if current.kind is ScopeKind.CLASS and not first:
                current = current.parent
                continue
            bindings = current.bindings.get(name)
            if bindings:
                return self.resolve_bindings(bindings, seen)
            if current.kind is ScopeKind.MODULE:
                for module in current.star_imports:
                    key = (module, "*")
                    if key in seen:
                        continue
                    found = [
                        v for v in self.compilation.resolve_member(
                            ModuleRef(module), name, seen | {key},
                        )
                        if v is not None
                    ]
                    if found:
                        return found
            first = False
            current = current.parent
        return [None]

    def resolve_bindings(
        self,
        bindings: Sequence[Binding],
        seen: FrozenSet[Tuple[str, str]] = frozenset(),
    ) -> Resolution:
        out: Resolution = []
        for binding in bindings:
            kind = binding.kind
            if kind is BindingKind.DEFINITION:
                out.append(binding.symbol)
            elif kind is BindingKind.PARAMETER:
                out.append(binding.value)
            elif kind is BindingKind.IMPORT_MODULE:
                out.append(ModuleRef(binding.module))
            elif kind is BindingKind.IMPORT_FROM:
                key = (binding.module, binding.member)
                if key in seen:
                    out.append(None)
                    continue
                resolved = self.compilation.resolve_member(
                    ModuleRef(binding.module), binding.member, seen | {key},
                )
                out.extend(resolved or [None])
            else:
                out.append(None)
        return out

    def __repr__(self) -> str:
        return f"<ModuleBinder {self.module_name} ({self.file})>"


__all__ = [
    "ScopeKind",
    "BindingKind",
    "Binding",
    "Scope",
    "ModuleRef",
    "InstanceRef",
    "ModuleBinder",
]
