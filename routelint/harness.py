"""
routelint/harness.py
════════════════════

End-to-end driver: source text in, diagnostics out.

    runner = AnalyzerRunner()
    diagnostics = await runner.run(["app.map_get('/', lambda: hello())"])

Every call builds its own ``Project``: the sources become ``test0.py``,
``test1.py``, … and every ``*.pyi`` stub found in the reference directory
is added unless a reference with the same name (case-insensitive,
extension ignored) is already present.  Compilation and analysis run on
the event loop's default executor.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from routelint.checkers import CheckerRegistry, CheckerRunner, CheckerRunResults
from routelint.compilation import Compilation, CompilationOptions, MetadataReference, Project
from routelint.config import ENV_REFERENCE_DIR, AnalyzerOptions, OutputKind
from routelint.diagnostics import Diagnostic
from routelint.suppressions import SuppressionManager

logger = logging.getLogger(__name__)

REFERENCE_PATTERN = "*.pyi"


def default_reference_directory() -> Path:
    """``$ROUTELINT_REFERENCE_DIR``, else the directory of the running script."""
    configured = os.environ.get(ENV_REFERENCE_DIR, "").strip()
    if configured:
        return Path(configured)
    script = sys.argv[0] if sys.argv and sys.argv[0] else "."
    return Path(os.path.abspath(script)).parent


def _reference_key(name: str) -> str:
    return os.path.splitext(os.path.basename(name))[0].casefold()


def add_references_in_directory(project: Project, directory: Path) -> Project:
    """Add every stub in ``directory`` not already referenced by name."""
    if not directory.is_dir():
        logger.debug("reference directory %s does not exist", directory)
        return project
    for path in sorted(directory.glob(REFERENCE_PATTERN)):
        key = _reference_key(path.name)
        if any(_reference_key(r.display) == key for r in project.metadata_references):
            logger.debug("reference %s already present", path.name)
            continue
        project = project.add_metadata_reference(MetadataReference.from_file(path))
    return project


class AnalyzerRunner:
    """
    Compiles sources and runs the checkers over them.

    Parameters
    ----------
    output_kind         : override for the compilation's output kind
                          (default: library)
    options             : analyzer options
    base_directory      : where reference stubs are looked up
    registry            : checker registry (default: built-in checkers)
    checkers            : names of the checkers to run (default: all)
    global_suppressions : rule ids suppressed everywhere
    """

    def __init__(
        self,
        output_kind: Optional[OutputKind] = None,
        options: Optional[AnalyzerOptions] = None,
        base_directory: Optional[Union[str, Path]] = None,
        registry: Optional[CheckerRegistry] = None,
        checkers: Optional[Sequence[str]] = None,
        global_suppressions: Iterable[str] = (),
    ) -> None:
        self.output_kind = output_kind
        self.options = options or AnalyzerOptions()
        self.base_directory = Path(base_directory) if base_directory is not None else None
        self.registry = registry
        self.checkers = list(checkers) if checkers is not None else None
        self.global_suppressions = tuple(global_suppressions)

    # ── project construction ─────────────────────────────────────────

    @staticmethod
    def create_project_with_references(
        base_directory: Union[str, Path],
        *sources: str,
    ) -> Project:
        project = Project.create(sources)
        return add_references_in_directory(project, Path(base_directory))

    def configure_compilation_options(self, options: CompilationOptions) -> CompilationOptions:
        if self.output_kind is not None:
            return options.with_output_kind(self.output_kind)
        return options.with_output_kind(OutputKind.LIBRARY)

    # ── entry points ─────────────────────────────────────────────────

    async def run(self, sources: Union[str, Sequence[str]]) -> List[Diagnostic]:
        if isinstance(sources, str):
            sources = [sources]
        base = self.base_directory or default_reference_directory()
        project = self.create_project_with_references(base, *sources)
        return await self.run_project(project)

    async def run_project(self, project: Project) -> List[Diagnostic]:
        results = await self.analyze(project)
        return results.diagnostics

    async def analyze(self, project: Project) -> CheckerRunResults:
        """Like ``run_project`` but returns the full run results."""
        project = project.with_compilation_options(
            self.configure_compilation_options(project.compilation_options)
        )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.analyze_sync, project)

    def analyze_sync(self, project: Project) -> CheckerRunResults:
        compilation = Compilation.create(project)
        suppressions = SuppressionManager()
        for rule_id in self.global_suppressions:
            suppressions.add_global_suppression(rule_id)
        runner = CheckerRunner(
            registry=self.registry,
            suppressions=suppressions,
            options=self.options,
        )
        return runner.run(compilation, checkers=self.checkers)


__all__ = [
    "REFERENCE_PATTERN",
    "AnalyzerRunner",
    "add_references_in_directory",
    "default_reference_directory",
]
