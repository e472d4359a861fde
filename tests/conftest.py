# tests/conftest.py
"""Shared fixtures: reference stubs, harness and compilation helpers."""

import asyncio
from pathlib import Path

import pytest

from routelint.compilation import Compilation, MetadataReference, Project
from routelint.harness import AnalyzerRunner

REFERENCE_DIR = Path(__file__).parent / "references"


@pytest.fixture
def reference_dir():
    return REFERENCE_DIR


@pytest.fixture
def references():
    return [MetadataReference.from_file(p) for p in sorted(REFERENCE_DIR.glob("*.pyi"))]


@pytest.fixture
def runner():
    return AnalyzerRunner(base_directory=REFERENCE_DIR)


@pytest.fixture
def analyze(runner):
    """Run the harness synchronously: ``analyze(src0, src1, ...)``."""
    def _analyze(*sources, analyzer=None):
        return asyncio.run((analyzer or runner).run(list(sources)))
    return _analyze


@pytest.fixture
def compile_sources(references):
    """Bind ``sources`` (test0.py, test1.py, ...) against the reference stubs."""
    def _compile(*sources):
        return Compilation.create(Project.create(sources, references))
    return _compile
