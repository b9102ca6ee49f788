"""
End-to-end pipeline: workspace setup, preflight checks and stage execution.
"""

import urllib.request
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from loguru import logger

from .run import Run
from .sequencer import StageRecord, StageSequencer
from .stages import Stage, StageContext, default_stages
from .tools import preflight, run_command
from .workspace import Workspace


@dataclass
class PipelineResult:
    context: StageContext
    records: List[StageRecord]

    @property
    def viral_count(self) -> Optional[int]:
        subset = self.context.viral_subset
        return subset.count if subset else None


def run_pipeline(
    run: Run,
    runner: Callable = run_command,
    which: Optional[Callable] = None,
    downloader: Callable = urllib.request.urlretrieve,
    stages: Optional[Sequence[Stage]] = None,
) -> PipelineResult:
    """
    Run DNAtax from SRA download through to final storage.

    Args:
        run: Run configuration
        runner: Command runner for the external tools
        which: Executable lookup used by the preflight check
        downloader: Remote file fetcher for the reference database
        stages: Stages to execute (defaults to the full pipeline)

    Returns:
        PipelineResult with the stage context and completed stage records
    """
    run.log_summary()
    stages = list(stages) if stages is not None else default_stages()

    workspace = Workspace.for_run(run)
    workspace.ensure_layout()
    workspace.install_helper(run.home_dir)

    report = preflight([stage.name for stage in stages], which=which)
    report.raise_for_missing()

    ctx = StageContext(run=run, workspace=workspace, runner=runner, downloader=downloader)
    records = StageSequencer(ctx, stages, log_mode=run.log_mode).run()

    logger.info(f"DNAtax finished for {run.project} ({run.label})")
    return PipelineResult(context=ctx, records=records)
