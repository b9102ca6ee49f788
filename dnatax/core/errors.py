"""
Exceptions raised by the DNAtax pipeline.

Every fatal condition maps to a dedicated exit status so operators can
script around the different failure causes.
"""

from pathlib import Path
from typing import Dict, List, Union


class DnataxError(Exception):
    """Base exception for DNAtax."""

    exit_code = 1


class UsageError(DnataxError):
    """Raised when the project name or sample accessions are missing."""

    exit_code = 1


class LayoutError(DnataxError):
    """Raised when libraries are mixed or their layout cannot be determined."""

    exit_code = 2


class InvalidLayoutError(DnataxError):
    """Raised when a library layout other than 'paired' or 'single' is requested."""

    exit_code = 3


class HelperMissingError(DnataxError):
    """Raised when the taxonomy helper script cannot be installed."""

    exit_code = 5


class ToolMissingError(DnataxError):
    """Raised when one or more external programs are not installed."""

    exit_code = 6

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = missing
        lines = [
            f"  {tool} (needed by: {', '.join(stages)})" if stages else f"  {tool}"
            for tool, stages in missing.items()
        ]
        super().__init__(
            "Missing required software:\n" + "\n".join(lines) +
            "\nPlease install these applications and retry."
        )


class PreconditionError(DnataxError):
    """Raised when an artifact expected from a previous stage is absent."""

    exit_code = 7

    def __init__(self, stage: str, path: Union[str, Path]):
        self.stage = stage
        self.path = Path(path)
        super().__init__(f"Stage '{stage}' cannot start: required file not found: {self.path}")


class ExternalToolError(DnataxError):
    """Raised when an external program fails or does not produce its output."""

    exit_code = 8


class ExtractionError(DnataxError):
    """Raised when selected identifiers cannot be matched to sequences."""

    exit_code = 8


class FinalizeError(DnataxError):
    """Raised when results could not be copied to permanent storage."""

    exit_code = 9
