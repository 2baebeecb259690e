#!/usr/bin/env python3
"""
hoptrace v1.0.0 - Setup Configuration
=====================================

TTL-limited forward path discovery (traceroute) with ICMP, UDP and TCP probes.

Installation:
    pip install .

    OR (development mode):
    pip install -e ".[dev]"

    Creates the 'hoptrace' console script.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read long description from README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Core dependencies
REQUIRED_PACKAGES = [
    "jsonschema>=4.0.0",    # Configuration file validation
    "colorama>=0.4.6",      # Cross-platform colored output
]

# Optional development dependencies
EXTRAS_REQUIRE = {
    "dev": [
        "pytest>=7.0.0",    # Testing
        "pytest-cov>=4.0.0", # Coverage reporting
        "scapy>=2.4.5",     # Building wire-accurate test fixtures
        "black>=22.0.0",    # Code formatting
        "pylint>=2.14.0",   # Linting
        "mypy>=0.950",      # Type checking
    ],
}
EXTRAS_REQUIRE["test"] = EXTRAS_REQUIRE["dev"][:3]

setup(
    # Package Information
    name="hoptrace",
    version="1.0.0",
    description="Traceroute engine with ICMP, UDP and TCP probes and adaptive timeouts",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet",
        "Topic :: System :: Networking",
        "Topic :: System :: Networking :: Monitoring",
    ],

    # Keywords for searching
    keywords=[
        "network",
        "traceroute",
        "icmp",
        "ttl",
        "tcp-ip",
        "diagnostics",
    ],

    # Package Configuration
    packages=find_packages(exclude=["tests", "tests.*", "docs", "examples"]),

    # Python Version Requirement
    python_requires=">=3.8",

    # Dependencies
    install_requires=REQUIRED_PACKAGES,
    extras_require=EXTRAS_REQUIRE,

    # Entry Points (Console Scripts)
    entry_points={
        "console_scripts": [
            "hoptrace=hoptrace.cli:main",
        ],
    },

    zip_safe=False,
)
