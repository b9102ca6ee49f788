"""
Assembler manifest: the YAML dataset description handed to rnaSPAdes.

The manifest is built as an in-memory document and serialized once with
PyYAML, so list separators never need fixing up afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from loguru import logger

from .errors import LayoutError
from .layout import TRIMMED_SUFFIXES
from .run import Layout


# rnaSPAdes resolves relative paths against the manifest location (scripts/)
DEFAULT_BASE_DIR = "../data/fastq-adapter-trimmed"

LAYOUT_TAGS = {
    Layout.PAIRED: "paired-end",
    Layout.SINGLE: "single",
}


@dataclass
class LibraryRecord:
    """One library entry of the manifest."""

    type: str
    orientation: Optional[str] = None
    single_reads: List[str] = field(default_factory=list)
    left_reads: List[str] = field(default_factory=list)
    right_reads: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {}
        if self.orientation:
            entry["orientation"] = self.orientation
        entry["type"] = self.type
        if self.type == LAYOUT_TAGS[Layout.PAIRED]:
            entry["left reads"] = list(self.left_reads)
            entry["right reads"] = list(self.right_reads)
        else:
            entry["single reads"] = list(self.single_reads)
        return entry

    @classmethod
    def from_dict(cls, entry: Dict[str, Any]) -> "LibraryRecord":
        return cls(
            type=entry["type"],
            orientation=entry.get("orientation"),
            single_reads=list(entry.get("single reads", [])),
            left_reads=list(entry.get("left reads", [])),
            right_reads=list(entry.get("right reads", [])),
        )


@dataclass
class AssemblerManifest:
    """Ordered library records describing the assembler input."""

    libraries: List[LibraryRecord]

    def to_document(self) -> List[Dict[str, Any]]:
        return [library.to_dict() for library in self.libraries]

    def dumps(self) -> str:
        return yaml.safe_dump(self.to_document(), default_flow_style=False, sort_keys=False)

    def write(self, path: Union[str, Path]) -> Path:
        """Write the manifest, replacing any manifest from a previous run."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps())
        logger.info(f"Wrote assembler manifest to {path}")
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AssemblerManifest":
        with open(path, "r") as f:
            document = yaml.safe_load(f) or []
        return cls(libraries=[LibraryRecord.from_dict(entry) for entry in document])


class ManifestBuilder:
    """Builds assembler manifests from accessions and a resolved layout."""

    def build(
        self,
        accessions: Sequence[str],
        layout: Layout,
        base_dir: str = DEFAULT_BASE_DIR,
    ) -> AssemblerManifest:
        """
        Build the manifest for a run.

        Args:
            accessions: Run accessions; their order is kept in the manifest
            layout: Resolved library layout
            base_dir: Directory of the trimmed reads, as seen by the assembler

        Returns:
            AssemblerManifest with a single library record
        """
        if layout not in LAYOUT_TAGS:
            raise LayoutError("Cannot build assembler manifest: library layout is not resolved")

        base = str(base_dir).rstrip("/")
        suffixes = TRIMMED_SUFFIXES[layout]

        def paths(suffix: str) -> List[str]:
            return [f"{base}/{accession}{suffix}" for accession in accessions]

        if layout is Layout.PAIRED:
            record = LibraryRecord(
                type=LAYOUT_TAGS[layout],
                orientation="fr",
                left_reads=paths(suffixes[0]),
                right_reads=paths(suffixes[1]),
            )
        else:
            record = LibraryRecord(type=LAYOUT_TAGS[layout], single_reads=paths(suffixes[0]))

        logger.debug(f"Built {layout.value}-read manifest for {len(accessions)} accession(s)")
        return AssemblerManifest(libraries=[record])
