"""
Library layout detection and per-accession read file sets.
"""

from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from .errors import LayoutError
from .run import Layout


# fasterq-dump --split-3 naming
RAW_SUFFIXES = {
    Layout.SINGLE: (".fastq",),
    Layout.PAIRED: ("_1.fastq", "_2.fastq"),
}

# trim_galore naming; the assembler manifest relies on these
TRIMMED_SUFFIXES = {
    Layout.SINGLE: ("_trimmed.fq",),
    Layout.PAIRED: ("_1_val_1.fq", "_2_val_2.fq"),
}


@dataclass(frozen=True)
class LibraryFiles:
    """Read files of one accession at a given point of the pipeline."""

    accession: str
    layout: Layout
    paths: Tuple[Path, ...]

    def missing(self) -> List[Path]:
        return [path for path in self.paths if not path.exists()]


def _file_set(accession: str, layout: Layout, directory: Path, suffixes: Dict) -> LibraryFiles:
    if layout not in suffixes:
        raise LayoutError(f"Library layout of {accession} is not resolved")
    paths = tuple(Path(directory) / f"{accession}{suffix}" for suffix in suffixes[layout])
    return LibraryFiles(accession=accession, layout=layout, paths=paths)


def raw_files(accession: str, layout: Layout, raw_dir: Union[str, Path]) -> LibraryFiles:
    """Downloaded reads of an accession."""
    return _file_set(accession, layout, Path(raw_dir), RAW_SUFFIXES)


def trimmed_files(accession: str, layout: Layout, trimmed_dir: Union[str, Path]) -> LibraryFiles:
    """Adapter-trimmed reads of an accession."""
    return _file_set(accession, layout, Path(trimmed_dir), TRIMMED_SUFFIXES)


class LibraryLayoutDetector:
    """
    Classifies runs as paired-end or single-end from the downloaded files.

    fasterq-dump writes '<acc>.fastq' for unpaired libraries and
    '<acc>_1.fastq' + '<acc>_2.fastq' for paired ones.
    """

    def detect_one(self, accession: str, raw_dir: Union[str, Path]) -> Optional[Layout]:
        """Layout of a single accession, or None if no naming pattern matches."""
        raw_dir = Path(raw_dir)
        if all(path.exists() for path in raw_files(accession, Layout.SINGLE, raw_dir).paths):
            return Layout.SINGLE
        if all(path.exists() for path in raw_files(accession, Layout.PAIRED, raw_dir).paths):
            return Layout.PAIRED
        return None

    def detect(
        self,
        accessions: Sequence[str],
        raw_dir: Union[str, Path],
        override: Optional[Union[str, Layout]] = None,
    ) -> Layout:
        """
        Determine the library layout shared by every accession of a run.

        Args:
            accessions: Run accessions, in run order
            raw_dir: Directory holding the downloaded reads
            override: Explicit layout; returned without inspecting any file

        Returns:
            Layout.PAIRED or Layout.SINGLE

        Raises:
            LayoutError: if the libraries are mixed or a run matches no pattern
        """
        if override is not None:
            layout = Layout.parse(override)
            if layout is not Layout.UNRESOLVED:
                logger.info(f"Using user-supplied library layout: {layout.value}")
                return layout

        counts: Counter = Counter()
        undetermined = []
        for accession in accessions:
            layout = self.detect_one(accession, raw_dir)
            if layout is None:
                undetermined.append(accession)
            else:
                counts[layout] += 1

        if undetermined:
            raise LayoutError(
                "Cannot determine if input libraries are paired-end or single-end; "
                f"no read files found for: {', '.join(undetermined)}"
            )

        if len(counts) != 1:
            raise LayoutError(
                "Possibly mixed input libraries: "
                f"{counts[Layout.PAIRED]} paired-end and {counts[Layout.SINGLE]} single-end"
            )

        layout = next(iter(counts))
        logger.info(f"Detected {layout.value}-end libraries for {counts[layout]} accession(s)")
        return layout
