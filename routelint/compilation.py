"""
routelint/compilation.py
════════════════════════

Projects and compilations.

  SourceDocument     — one analyzed source text
  MetadataReference  — one ``.pyi`` stub consulted for symbols only
  CompilationOptions — output kind
  Project            — immutable bundle of documents, references, options
  Compilation        — parsed + bound modules for a project

A ``Project`` is a value: ``add_metadata_reference`` and friends return a
new project, so several harness invocations can share a base project
without interfering.

Reference stubs are named by their dotted module path, e.g.
``routekit.authorization.pyi`` provides module ``routekit.authorization``.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from routelint.binder import InstanceRef, ModuleBinder, ModuleRef, Resolution, Value
from routelint.config import OutputKind
from routelint.errors import CompilationError, ReferenceLoadError
from routelint.symbols import TypeSymbol

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_PREFIX = "test"
MAIN_MODULE = "__main__"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — PROJECT MODEL
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceDocument:
    name: str
    text: str
    module_name: str
    is_package: bool = False

    @classmethod
    def from_path(cls, path: Path, root: Path) -> SourceDocument:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise CompilationError(str(path), f"cannot read source: {exc}") from exc
        return cls(
            name=str(path),
            text=text,
            module_name=module_name_for_path(path, root),
            is_package=path.name == "__init__.py",
        )


@dataclass(frozen=True)
class MetadataReference:
    path: Path
    module_name: str

    @classmethod
    def from_file(cls, path: Path) -> MetadataReference:
        path = Path(path)
        return cls(path=path, module_name=path.stem)

    @property
    def display(self) -> str:
        return str(self.path)

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ReferenceLoadError(self.display, str(exc)) from exc


@dataclass(frozen=True)
class CompilationOptions:
    output_kind: OutputKind = OutputKind.LIBRARY

    def with_output_kind(self, output_kind: OutputKind) -> CompilationOptions:
        return replace(self, output_kind=output_kind)


@dataclass(frozen=True)
class Project:
    name: str
    documents: Tuple[SourceDocument, ...] = ()
    metadata_references: Tuple[MetadataReference, ...] = ()
    compilation_options: CompilationOptions = field(default_factory=CompilationOptions)

    @classmethod
    def create(
        cls,
        sources: Sequence[str],
        references: Iterable[MetadataReference] = (),
        name: str = "TestProject",
    ) -> Project:
        """Project with one document per source text: ``test0.py``, ``test1.py``, …"""
        documents = tuple(
            SourceDocument(
                name=f"{DEFAULT_DOCUMENT_PREFIX}{index}.py",
                text=text,
                module_name=f"{DEFAULT_DOCUMENT_PREFIX}{index}",
            )
            for index, text in enumerate(sources)
        )
        return cls(name=name, documents=documents, metadata_references=tuple(references))

    def add_metadata_reference(self, reference: MetadataReference) -> Project:
        return replace(self, metadata_references=self.metadata_references + (reference,))

    def with_compilation_options(self, options: CompilationOptions) -> Project:
        return replace(self, compilation_options=options)

    def get_compilation(self) -> Compilation:
        return Compilation.create(self)


def module_name_for_path(path: Path, root: Path) -> str:
    """``root/pkg/sub/mod.py`` → ``pkg.sub.mod``; ``__init__.py`` names its package."""
    try:
        relative = path.resolve().relative_to(root.resolve())
    except ValueError:
        relative = Path(path.name)
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts) or path.stem


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — COMPILATION
# ═════════════════════════════════════════════════════════════════════════

class Compilation:
    """
    All modules of a project, parsed and bound.

    Source documents are analyzed; references only contribute symbols.
    When a source and a reference provide the same module, the source
    wins.
    """

    def __init__(self, project: Project) -> None:
        self.project = project
        self.options = project.compilation_options
        self.modules: Dict[str, ModuleBinder] = {}
        self.source_modules: List[ModuleBinder] = []
        self.reference_modules: List[ModuleBinder] = []

    @classmethod
    def create(cls, project: Project) -> Compilation:
        compilation = cls(project)
        compilation._parse_sources()
        compilation._parse_references()
        binders = compilation.source_modules + compilation.reference_modules
        for binder in binders:
            binder.declare()
        for binder in binders:
            binder.bind_base_types()
        for binder in binders:
            binder.bind_attributes()
        logger.info(
            "compiled %s: %d source modules, %d reference modules",
            project.name, len(compilation.source_modules), len(compilation.reference_modules),
        )
        return compilation

    def _parse_sources(self) -> None:
        console = self.options.output_kind is OutputKind.CONSOLE_APPLICATION
        for index, document in enumerate(self.project.documents):
            try:
                tree = ast.parse(document.text, filename=document.name)
            except SyntaxError as exc:
                raise CompilationError.from_syntax_error(document.name, exc) from exc
            except ValueError as exc:
                # null bytes in the source
                raise CompilationError(document.name, str(exc)) from exc
            module_name = MAIN_MODULE if console and index == 0 else document.module_name
            binder = ModuleBinder(self, module_name, document.name, tree, document.is_package)
            if module_name in self.modules:
                # analyzed, but imports of the name keep resolving to the first
                logger.warning(
                    "duplicate module %s in %s; imports resolve to %s",
                    module_name, document.name, self.modules[module_name].file,
                )
            else:
                self.modules[module_name] = binder
            self.source_modules.append(binder)

    def _parse_references(self) -> None:
        for reference in self.project.metadata_references:
            if reference.module_name in self.modules:
                logger.debug("reference %s shadowed by an existing module", reference.display)
                continue
            text = reference.read_text()
            try:
                tree = ast.parse(text, filename=reference.display)
            except SyntaxError as exc:
                raise ReferenceLoadError(reference.display, f"line {exc.lineno}: {exc.msg}") from exc
            except ValueError as exc:
                raise ReferenceLoadError(reference.display, str(exc)) from exc
            binder = ModuleBinder(self, reference.module_name, reference.display, tree)
            self.modules[reference.module_name] = binder
            self.reference_modules.append(binder)

    # ── queries ──────────────────────────────────────────────────────

    def get_module(self, name: str) -> Optional[ModuleBinder]:
        return self.modules.get(name)

    def has_module(self, name: str) -> bool:
        """True for a known module or a package prefix of one."""
        if name in self.modules:
            return True
        prefix = name + "."
        return any(m.startswith(prefix) for m in self.modules)

    def get_semantic_model(self, document_name: str) -> ModuleBinder:
        for binder in self.source_modules:
            if binder.file == document_name:
                return binder
        raise KeyError(document_name)

    def resolve_member(
        self,
        value: Optional[Value],
        attr: str,
        seen: FrozenSet[Tuple[str, str]] = frozenset(),
    ) -> Resolution:
        """Resolve ``value.attr``."""
        if isinstance(value, ModuleRef):
            module = self.get_module(value.name)
            if module is not None:
                resolved = module.resolve_name(attr, module.scope, seen)
                if any(v is not None for v in resolved):
                    return resolved
            submodule = f"{value.name}.{attr}" if value.name else attr
            if self.has_module(submodule):
                return [ModuleRef(submodule)]
            return [None]

        owner: Optional[TypeSymbol] = None
        if isinstance(value, TypeSymbol):
            owner = value
        elif isinstance(value, InstanceRef):
            owner = value.type
        if owner is None:
            return [None]

        for klass in owner.mro():
            binder = self._binder_for_type(klass)
            if binder is None:
                continue
            scope = binder.class_scopes[klass]
            bindings = scope.bindings.get(attr)
            if bindings:
                return binder.resolve_bindings(bindings, seen)
        return [None]

    def _binder_for_type(self, symbol: TypeSymbol) -> Optional[ModuleBinder]:
        namespace = symbol.containing_namespace
        if namespace is None:
            return None
        binder = self.modules.get(namespace.qualified_name)
        if binder is not None and symbol in binder.class_scopes:
            return binder
        for candidate in self.source_modules:
            if symbol in candidate.class_scopes:
                return candidate
        return None


__all__ = [
    "SourceDocument",
    "MetadataReference",
    "CompilationOptions",
    "Project",
    "Compilation",
    "module_name_for_path",
]
