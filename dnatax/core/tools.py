"""
External program invocation, preflight checks and download outcome policy.
"""

import shutil
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from .errors import ExternalToolError, ToolMissingError


# Executables each stage needs on PATH
STAGE_TOOLS: Dict[str, List[str]] = {
    "download": ["fasterq-dump"],
    "trim": ["trim_galore"],
    "assemble": ["rnaspades.py"],
    "classify": ["diamond"],
}


def run_command(
    cmd: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    check: bool = True,
    capture: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run an external program and wait for it to exit.

    Args:
        cmd: Command line
        cwd: Working directory for the program
        check: Raise ExternalToolError on a non-zero exit status
        capture: Capture stdout/stderr instead of streaming them

    Returns:
        The completed process
    """
    cmd = [str(part) for part in cmd]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=capture,
            text=True,
        )
    except FileNotFoundError:
        raise ToolMissingError({cmd[0]: []})

    if result.returncode != 0 and check:
        if result.stdout:
            logger.error(f"{cmd[0]} stdout: {result.stdout.strip()}")
        if result.stderr:
            logger.error(f"{cmd[0]} stderr: {result.stderr.strip()}")
        raise ExternalToolError(f"{cmd[0]} failed with exit code {result.returncode}")

    return result


@dataclass
class PreflightReport:
    """Outcome of checking every required executable before a run."""

    available: Dict[str, str] = field(default_factory=dict)
    missing: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.missing

    def raise_for_missing(self) -> None:
        if self.missing:
            raise ToolMissingError(self.missing)


def preflight(
    stages: Iterable[str],
    which: Optional[Callable[[str], Optional[str]]] = None,
) -> PreflightReport:
    """
    Check once that every tool needed by the given stages is installed.

    Args:
        stages: Stage names about to run
        which: Lookup function returning the executable path or None

    Returns:
        PreflightReport listing found and missing tools
    """
    which = which or shutil.which
    report = PreflightReport()
    for stage in stages:
        for tool in STAGE_TOOLS.get(stage, []):
            location = which(tool)
            if location:
                report.available[tool] = location
            else:
                report.missing.setdefault(tool, []).append(stage)

    for tool, location in report.available.items():
        logger.debug(f"Found {tool} at {location}")
    for tool, stages in report.missing.items():
        logger.error(f"Required tool '{tool}' not found (needed by: {', '.join(stages)})")

    return report


class DownloadOutcome(str, Enum):
    OK = "ok"
    IGNORABLE = "ignorable"
    FATAL = "fatal"


def classify_download(
    result: subprocess.CompletedProcess,
    expected_files: Iterable[Path] = (),
) -> DownloadOutcome:
    """
    Decide whether a downloader exit condition should stop the run.

    fasterq-dump exits non-zero when its output files already exist; that
    case is not an error for the pipeline.
    """
    if result.returncode == 0:
        return DownloadOutcome.OK

    output = f"{result.stdout or ''}\n{result.stderr or ''}".lower()
    if "exists" in output:
        return DownloadOutcome.IGNORABLE

    expected = list(expected_files)
    if expected and all(Path(path).exists() for path in expected):
        return DownloadOutcome.IGNORABLE

    return DownloadOutcome.FATAL
