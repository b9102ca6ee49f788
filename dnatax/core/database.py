"""
DIAMOND reference database setup.

Uses an existing database when one is configured; otherwise downloads the
NCBI nr protein FASTA and taxonomy files into temporary space and builds a
DIAMOND database from them.
"""

import urllib.request
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger

from .tools import run_command
from .workspace import Workspace


NR_URL = "ftp://ftp.ncbi.nlm.nih.gov/blast/db/FASTA/nr.gz"
ACCESSION2TAXID_URL = "ftp://ftp.ncbi.nlm.nih.gov/pub/taxonomy/accession2taxid/prot.accession2taxid.gz"
TAXDMP_URL = "ftp://ftp.ncbi.nlm.nih.gov/pub/taxonomy/taxdmp.zip"

ACCESSION2TAXID = "prot.accession2taxid.gz"
TAXDMP = "taxdmp.zip"
DB_NAME = "nr"


@dataclass(frozen=True)
class DatabaseInfo:
    """Location of the DIAMOND database used for classification."""

    db_path: Path
    db_dir: Path
    database_built: bool = False
    taxonomy_downloaded: bool = False

    @property
    def freshly_built(self) -> bool:
        """True when anything was written to temporary space and must be persisted."""
        return self.database_built or self.taxonomy_downloaded


class ReferenceDatabase:
    """Locates or builds the DIAMOND database and its NCBI taxonomy files."""

    def __init__(
        self,
        workspace: Workspace,
        runner: Callable = run_command,
        downloader: Callable = urllib.request.urlretrieve,
    ):
        """
        Args:
            workspace: Workspace of the current run (temp space holds new files)
            runner: Command runner used for 'diamond makedb'
            downloader: Function(url, filename) fetching a remote file
        """
        self.workspace = workspace
        self.runner = runner
        self.downloader = downloader

    @staticmethod
    def exists(db_path: Optional[Union[str, Path]]) -> bool:
        if not db_path:
            return False
        db_path = Path(db_path)
        return db_path.is_file() or db_path.with_name(db_path.name + ".dmnd").is_file()

    def ensure(self, diamond_db: Optional[Union[str, Path]] = None) -> DatabaseInfo:
        """
        Make sure a usable DIAMOND database and taxonomy files are available.

        Args:
            diamond_db: Configured database path (e.g. /dbs/diamond/nr) or None

        Returns:
            DatabaseInfo; database_built and taxonomy_downloaded tell the
            finalizer what was written to temporary space
        """
        new_dir = self.workspace.database_temp_dir
        taxonomy_downloaded = False

        if self.exists(diamond_db):
            db_path = Path(diamond_db)
            db_dir = db_path.parent
            database_built = False
            logger.info(f"Using DIAMOND database at {db_path}")
        else:
            logger.warning(
                "Missing DIAMOND database. Downloading NCBI nr and building a new "
                "DIAMOND database now; this may take a while. Specify an existing "
                "database with '-d' to skip this step."
            )
            new_dir.mkdir(parents=True, exist_ok=True)
            self._download_taxonomy(new_dir)
            db_path = self._build(new_dir)
            db_dir = new_dir
            database_built = True

        if not self._has_taxonomy(db_dir):
            logger.warning("Necessary NCBI taxonomy files are missing. Downloading them now")
            new_dir.mkdir(parents=True, exist_ok=True)
            self._download_taxonomy(new_dir)
            taxonomy_downloaded = True

        return DatabaseInfo(
            db_path=db_path,
            db_dir=db_dir,
            database_built=database_built,
            taxonomy_downloaded=taxonomy_downloaded,
        )

    @staticmethod
    def _has_taxonomy(db_dir: Path) -> bool:
        return (db_dir / ACCESSION2TAXID).is_file() and (db_dir / TAXDMP).is_file()

    def _download(self, url: str, target: Path) -> Path:
        logger.info(f"Downloading {url} -> {target}")
        self.downloader(url, str(target))
        return target

    def _download_taxonomy(self, db_dir: Path) -> None:
        self._download(ACCESSION2TAXID_URL, db_dir / ACCESSION2TAXID)
        self._download(TAXDMP_URL, db_dir / TAXDMP)

        with zipfile.ZipFile(db_dir / TAXDMP) as archive:
            for member in ("nodes.dmp", "names.dmp"):
                if member in archive.namelist():
                    archive.extract(member, db_dir)
        logger.info("Taxonomy files downloaded successfully")

    def _build(self, db_dir: Path) -> Path:
        """Download nr and run 'diamond makedb' with taxonomy support."""
        nr_fasta = self._download(NR_URL, db_dir / "nr.gz")
        db_path = db_dir / DB_NAME

        cmd = [
            "diamond", "makedb",
            "--in", str(nr_fasta),
            "-d", str(db_path),
            "--taxonmap", str(db_dir / ACCESSION2TAXID),
        ]
        if (db_dir / "nodes.dmp").is_file():
            cmd.extend(["--taxonnodes", str(db_dir / "nodes.dmp")])
        if (db_dir / "names.dmp").is_file():
            cmd.extend(["--taxonnames", str(db_dir / "names.dmp")])

        self.runner(cmd)
        logger.info(f"Built DIAMOND database at {db_path}")
        return db_path
