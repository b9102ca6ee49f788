"""
Workspace layout: working, temporary and final directory trees of a run.
"""

import shutil
from pathlib import Path
from typing import List, Union

from loguru import logger

from .errors import HelperMissingError


HELPER_SCRIPT = "diamondToTaxonomy.py"
HELPER_SOURCE = "github.com/austinreidmanny/dnatax"

#   working/
#     |_ data/
#     |_ analysis/
#     |_ scripts/
WORKING_SUBDIRS = (
    "data/contigs",
    "data/raw-sra",
    "data/fastq-adapter-trimmed",
    "analysis/timelogs",
    "analysis/contigs",
    "analysis/diamond",
    "analysis/taxonomy",
    "analysis/viruses",
    "scripts",
)


class Workspace:
    """
    Owns the on-disk layout of a run and the names of every artifact in it.

    All artifact names are keyed by the sample-set label so that several
    sample sets can share one working directory.
    """

    def __init__(
        self,
        working_dir: Union[str, Path],
        temp_dir: Union[str, Path],
        final_dir: Union[str, Path],
        label: str,
    ):
        self.working_dir = Path(working_dir)
        self.temp_dir = Path(temp_dir)
        self.final_dir = Path(final_dir)
        self.label = label

    @classmethod
    def for_run(cls, run) -> "Workspace":
        return cls(run.working_dir, run.temp_dir, run.final_dir, run.label)

    def ensure_layout(self) -> List[Path]:
        """
        Create the directory trees if absent.

        Safe to call repeatedly; existing directories and their contents are
        left untouched.

        Returns:
            List of directories that make up the working tree
        """
        for root in (self.working_dir, self.temp_dir, self.final_dir):
            root.mkdir(parents=True, exist_ok=True)

        created = []
        for subdir in WORKING_SUBDIRS:
            path = self.working_dir / subdir
            path.mkdir(parents=True, exist_ok=True)
            created.append(path)

        logger.debug(f"Workspace ready at {self.working_dir}")
        return created

    def install_helper(self, home_dir: Union[str, Path]) -> Path:
        """
        Copy the taxonomy helper from the home directory into scripts/.

        Raises:
            HelperMissingError: if the helper is not found in home_dir
        """
        source = Path(home_dir) / HELPER_SCRIPT
        if not source.is_file():
            raise HelperMissingError(
                f"Cannot find mandatory helper script {HELPER_SCRIPT} in {home_dir}. "
                f"Please download it from {HELPER_SOURCE}"
            )

        logger.info(f"Copying {HELPER_SCRIPT} into {self.scripts_dir}")
        shutil.copy2(source, self.helper_script)
        return self.helper_script

    # Directories
    @property
    def data_dir(self) -> Path:
        return self.working_dir / "data"

    @property
    def analysis_dir(self) -> Path:
        return self.working_dir / "analysis"

    @property
    def scripts_dir(self) -> Path:
        return self.working_dir / "scripts"

    @property
    def contigs_dir(self) -> Path:
        return self.data_dir / "contigs"

    @property
    def raw_dir(self) -> Path:
        return self.data_dir / "raw-sra"

    @property
    def trimmed_dir(self) -> Path:
        return self.data_dir / "fastq-adapter-trimmed"

    @property
    def diamond_dir(self) -> Path:
        return self.analysis_dir / "diamond"

    @property
    def taxonomy_dir(self) -> Path:
        return self.analysis_dir / "taxonomy"

    @property
    def viruses_dir(self) -> Path:
        return self.analysis_dir / "viruses"

    @property
    def assembly_temp_dir(self) -> Path:
        return self.temp_dir / "rnaspades"

    @property
    def database_temp_dir(self) -> Path:
        return self.temp_dir / "diamond_db"

    # Artifacts
    @property
    def timelog(self) -> Path:
        return self.analysis_dir / "timelogs" / f"{self.label}.log"

    @property
    def manifest(self) -> Path:
        return self.scripts_dir / f"{self.label}.input.yaml"

    @property
    def helper_script(self) -> Path:
        return self.scripts_dir / HELPER_SCRIPT

    @property
    def contigs_fasta(self) -> Path:
        return self.contigs_dir / f"{self.label}.contigs.fasta"

    @property
    def contigs_paths(self) -> Path:
        return self.contigs_dir / f"{self.label}.contigs.paths"

    @property
    def assembly_log(self) -> Path:
        return self.analysis_dir / "contigs" / f"{self.label}.contigs.log"

    @property
    def diamond_hits(self) -> Path:
        return self.diamond_dir / f"{self.label}.nr.diamond.txt"

    @property
    def taxonomy_table(self) -> Path:
        return self.taxonomy_dir / f"{self.label}.nr.diamond.taxonomy.txt"

    @property
    def viral_taxonomy(self) -> Path:
        return self.viruses_dir / f"{self.label}.viruses.taxonomy.txt"

    @property
    def viral_fasta(self) -> Path:
        return self.viruses_dir / f"{self.label}.viruses.fasta"

    @property
    def viral_summary(self) -> Path:
        return self.viruses_dir / f"{self.label}.viruses.summary.tsv"
