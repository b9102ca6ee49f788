#!/usr/bin/env python3
"""
DNAtax - viral discovery from SRA sequencing runs, including read download,
adapter trimming, assembly, taxonomic classification and viral extraction.
"""

from setuptools import setup, find_packages
import re

# Read version from dnatax/__init__.py (single source of truth)
def get_version():
    with open("dnatax/__init__.py", "r", encoding="utf-8") as f:
        content = f.read()
        match = re.search(r'__version__\s*=\s*["\']([^"\']+)["\']', content)
        if match:
            return match.group(1)
        raise RuntimeError("Unable to find version string")

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="dnatax",
    version=get_version(),
    author="DNAtax Team",
    description="Viral discovery from SRA sequencing runs: download, trimming, assembly, DIAMOND classification and viral extraction",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/austinreidmanny/dnatax",
    packages=find_packages(include=["dnatax", "dnatax.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Programming Language :: Python :: 3",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "dnatax=dnatax.cli:main",
        ],
    },
)
