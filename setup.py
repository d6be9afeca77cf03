#!/usr/bin/env python3
"""
KV-Snapshot Setup Script
========================
Allows installation of the kv-snapshot package.

Usage:
    pip install -e .           # Development install
    pip install -e .[test]     # With test dependencies
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="kv-snapshot",
    version="1.0.0",
    packages=find_packages(include=["kvsnap", "kvsnap.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "kv-snapshot=kvsnap.server:main",
        ],
    },
)
