"""
Finalization: copy durable results to permanent storage and remove temp space.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .database import DatabaseInfo
from .errors import FinalizeError
from .workspace import Workspace


FASTQ_NOTICE = (
    "FASTQ files not saved long-term; "
    "may be available in the working directory if needed: {working_dir}\n"
)


@dataclass
class FinalizeReport:
    copied: List[Path] = field(default_factory=list)
    database_dir: Optional[Path] = None
    reuse_flag: Optional[str] = None
    temp_removed: bool = False


class Finalizer:
    """Moves a finished run's results from working/temp space into final storage."""

    def __init__(self, workspace: Workspace):
        self.workspace = workspace

    def finalize(self, database: Optional[DatabaseInfo] = None) -> FinalizeReport:
        """
        Copy results to the final directory, then remove temporary space.

        Raw and adapter-trimmed reads are not kept; a README placeholder is
        written in their place. The temporary tree is only removed when every
        copy succeeded.

        Args:
            database: Database used by the run; persisted when freshly built

        Returns:
            FinalizeReport

        Raises:
            FinalizeError: if any copy failed (temporary space is kept)
        """
        ws = self.workspace
        final = ws.final_dir
        report = FinalizeReport()

        try:
            for source, target in (
                (ws.analysis_dir, final / "analysis"),
                (ws.scripts_dir, final / "scripts"),
                (ws.contigs_dir, final / "data" / "contigs"),
            ):
                if source.resolve() != target.resolve():
                    shutil.copytree(source, target, dirs_exist_ok=True)
                report.copied.append(target)
                logger.info(f"Copied {source} -> {target}")

            for reads_dir in ("raw-sra", "fastq-adapter-trimmed"):
                notice_dir = final / "data" / reads_dir
                notice_dir.mkdir(parents=True, exist_ok=True)
                (notice_dir / "README.txt").write_text(
                    FASTQ_NOTICE.format(working_dir=ws.working_dir)
                )

            if database is not None and database.freshly_built:
                target = final / "scripts" / "diamond_db"
                logger.info(f"Copying new DIAMOND database files to permanent storage at {target}")
                shutil.copytree(ws.database_temp_dir, target, dirs_exist_ok=True)
                report.database_dir = target
                if database.database_built:
                    report.reuse_flag = f"-d {target / database.db_path.name}"
                    logger.info(
                        f"Next time you run dnatax, you may use these files with the flag "
                        f"'{report.reuse_flag}'"
                    )
                else:
                    logger.info(
                        f"NCBI taxonomy files saved to {target}; copy them next to "
                        f"{database.db_path} to skip downloading them next time"
                    )
        except (OSError, shutil.Error) as e:
            logger.warning(f"Finalization failed; temporary files kept at {ws.temp_dir} for recovery")
            raise FinalizeError(f"Could not copy results to {final}: {e}") from e

        if ws.temp_dir.exists():
            shutil.rmtree(ws.temp_dir)
            logger.info(f"Removed temporary directory {ws.temp_dir}")
        report.temp_removed = True
        return report
