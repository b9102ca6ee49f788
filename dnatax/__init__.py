"""
DNAtax - viral discovery from public sequencing runs: download from the SRA,
adapter trimming, de novo assembly, DIAMOND classification and extraction of
the viral contigs.
"""

__version__ = "1.0.0"
__author__ = "DNAtax Team"

from .core.run import Run, Layout
from .core.pipeline import run_pipeline
from .core.viral_filter import ViralExtractor
from .core.manifest import ManifestBuilder

__all__ = [
    "Run",
    "Layout",
    "run_pipeline",
    "ViralExtractor",
    "ManifestBuilder",
]
