"""
Core modules for the DNAtax pipeline.
"""

from .workspace import Workspace
from .layout import LibraryLayoutDetector
from .manifest import ManifestBuilder, AssemblerManifest
from .database import ReferenceDatabase
from .viral_filter import ViralExtractor
from .finalizer import Finalizer
from .sequencer import StageSequencer
from .pipeline import run_pipeline

__all__ = [
    "Workspace",
    "LibraryLayoutDetector",
    "ManifestBuilder",
    "AssemblerManifest",
    "ReferenceDatabase",
    "ViralExtractor",
    "Finalizer",
    "StageSequencer",
    "run_pipeline",
]
