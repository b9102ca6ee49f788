"""
Run configuration: the immutable set of parameters for one pipeline invocation.
"""

import os
import re
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import psutil
import yaml
from loguru import logger

from .errors import InvalidLayoutError, UsageError


DEFAULT_MEMORY_GB = 16
DEFAULT_TARGET_TAXON = "Viruses"
LOG_MODES = ("append", "fresh")


class Layout(str, Enum):
    """Library layout of the sequencing runs."""

    PAIRED = "paired"
    SINGLE = "single"
    UNRESOLVED = "unresolved"

    @classmethod
    def parse(cls, value: Optional[Union[str, "Layout"]]) -> "Layout":
        """Parse a user-supplied layout; None means 'determine it later'."""
        if value is None or value == "":
            return cls.UNRESOLVED
        if isinstance(value, Layout):
            return value
        if value not in (cls.PAIRED.value, cls.SINGLE.value):
            raise InvalidLayoutError("Library type must be 'paired' or 'single'")
        return cls(value)


def parse_memory(value: Optional[Union[str, int]]) -> int:
    """Memory cap in GB; any non-digit characters are discarded ('30G' -> 30)."""
    if value is None:
        return DEFAULT_MEMORY_GB
    digits = re.sub(r"[^0-9]", "", str(value))
    if not digits:
        logger.info(f"No usable memory limit in '{value}'. Defaulting to {DEFAULT_MEMORY_GB}GB")
        return DEFAULT_MEMORY_GB
    return int(digits)


def resolve_threads(value: Optional[int] = None) -> int:
    """Number of worker threads handed to the external tools."""
    if value:
        return int(value)
    return psutil.cpu_count(logical=True) or os.cpu_count() or 1


def diamond_block_size(memory_gb: int) -> int:
    # Each DIAMOND block needs roughly 10GB of RAM
    return memory_gb // 10 or 2


def split_accessions(accessions: Union[str, Iterable[str], None]) -> Tuple[str, ...]:
    """Split a comma-separated accession string (or clean a sequence of them)."""
    if accessions is None:
        return ()
    if isinstance(accessions, str):
        accessions = accessions.split(",")
    return tuple(acc.strip() for acc in accessions if acc and acc.strip())


def load_config(config_path: Optional[Union[str, Path]]) -> Dict[str, Any]:
    """Load a YAML run-configuration file (empty dict when no path is given)."""
    if not config_path:
        return {}
    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise UsageError(f"Configuration file {config_path} must contain a mapping")
    logger.debug(f"Loaded configuration from {config_path}: {config}")
    return config


@dataclass(frozen=True)
class Run:
    """One invocation of the pipeline."""

    project: str
    accessions: Tuple[str, ...]
    label: str
    layout: Layout
    threads: int
    memory_gb: int
    working_dir: Path
    final_dir: Path
    temp_dir: Path
    home_dir: Path
    diamond_db: Optional[Path] = None
    target_taxon: str = DEFAULT_TARGET_TAXON
    log_mode: str = "append"

    @classmethod
    def create(
        cls,
        project: Optional[str],
        accessions: Union[str, Iterable[str], None],
        layout: Optional[str] = None,
        threads: Optional[int] = None,
        memory: Optional[Union[str, int]] = None,
        working_dir: Optional[Union[str, Path]] = None,
        final_dir: Optional[Union[str, Path]] = None,
        temp_dir: Optional[Union[str, Path]] = None,
        home_dir: Optional[Union[str, Path]] = None,
        diamond_db: Optional[Union[str, Path]] = None,
        target_taxon: Optional[str] = None,
        log_mode: Optional[str] = None,
    ) -> "Run":
        """
        Validate user parameters and build the run configuration.

        Args:
            project: Project name
            accessions: Comma-separated string or sequence of run accessions
            layout: 'paired', 'single' or None to detect after download
            threads: Thread count (defaults to the number of CPUs)
            memory: Memory cap in GB; non-digits are stripped
            working_dir: Where all analysis takes place
            final_dir: Permanent storage for the results
            temp_dir: Scratch space removed at the end of the run
            home_dir: Directory holding the diamondToTaxonomy.py helper
            diamond_db: Existing DIAMOND database (e.g. /dbs/nr)
            target_taxon: Taxon name used to select viral rows
            log_mode: 'append' or 'fresh' handling of the stage log

        Returns:
            Run instance
        """
        accession_list = split_accessions(accessions)
        if not project or not accession_list:
            raise UsageError("Missing project and/or sample names")

        parsed_layout = Layout.parse(layout)

        mode = log_mode or "append"
        if mode not in LOG_MODES:
            raise UsageError(f"Log mode must be one of {', '.join(LOG_MODES)}, got '{mode}'")

        # Computed once; names every artifact of this run
        label = f"{accession_list[0]}-{accession_list[-1]}"

        return cls(
            project=project,
            accessions=accession_list,
            label=label,
            layout=parsed_layout,
            threads=resolve_threads(threads),
            memory_gb=parse_memory(memory),
            working_dir=_absolute(working_dir or "./dnatax/"),
            final_dir=_absolute(final_dir or "./dnatax/"),
            temp_dir=_absolute(temp_dir or f"/tmp/dnatax/{label}"),
            home_dir=_absolute(home_dir or "./"),
            diamond_db=_absolute(diamond_db) if diamond_db else None,
            target_taxon=target_taxon or DEFAULT_TARGET_TAXON,
            log_mode=mode,
        )

    def with_layout(self, layout: Layout) -> "Run":
        """Copy of this run with the library layout resolved."""
        return replace(self, layout=layout)

    def log_summary(self) -> None:
        """Log the run parameters and the machine resources available to it."""
        logger.info(f"PROJECT name: {self.project}")
        logger.info(f"SRA sample accessions: {self.label} ({len(self.accessions)} runs)")
        logger.info(f"Library layout: {self.layout.value}")
        logger.info(f"Threads: {self.threads}, memory cap: {self.memory_gb}GB")

        available_gb = psutil.virtual_memory().available / 1024 ** 3
        if self.memory_gb > available_gb:
            logger.warning(
                f"Memory cap of {self.memory_gb}GB exceeds the {available_gb:.1f}GB currently available"
            )


def _absolute(path: Union[str, Path]) -> Path:
    return Path(path).expanduser().resolve()
