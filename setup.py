#!/usr/bin/env python3
# =============================================================================
#  routelint — setup.py  (legacy compatibility shim)
#
#  All authoritative metadata lives in pyproject.toml.
#  This file exists so that `pip install -e .` works on older pip /
#  setuptools that pre-date PEP 660 editable installs.
#
#  For new tooling, prefer:
#      pip install -e ".[test]"
#      python -m build
#      python -m pytest
# =============================================================================

from setuptools import find_packages, setup

setup(
    packages=find_packages(
        include=["routelint", "routelint.*"],
        exclude=["tests", "tests.*"],
    ),
    package_data={"routelint": ["py.typed"]},
    zip_safe=False,
)
