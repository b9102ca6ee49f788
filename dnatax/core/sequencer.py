"""
Stage sequencing and the per-run stage timelog.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from .errors import PreconditionError
from .stages import Stage, StageContext, default_stages


# Same layout as the coreutils `date` default
TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"


@dataclass(frozen=True)
class StageRecord:
    """A completed stage and its timestamps."""

    name: str
    description: str
    started: datetime
    finished: datetime

    @property
    def elapsed(self) -> float:
        return (self.finished - self.started).total_seconds()


class StageSequencer:
    """Runs the pipeline stages in order, checking each stage's inputs first."""

    def __init__(
        self,
        ctx: StageContext,
        stages: Optional[Sequence[Stage]] = None,
        log_mode: Optional[str] = None,
    ):
        self.ctx = ctx
        self.stages = list(stages) if stages is not None else default_stages()
        self.log_mode = log_mode or ctx.run.log_mode

    @property
    def timelog(self) -> Path:
        return self.ctx.workspace.timelog

    def run(self) -> List[StageRecord]:
        """
        Execute every stage in order.

        A stage starts only when all of its preconditions exist. Any
        exception stops the run; later stages are not executed.

        Returns:
            Records of the completed stages

        Raises:
            PreconditionError: if a stage's required input is missing
        """
        self.timelog.parent.mkdir(parents=True, exist_ok=True)
        if self.log_mode == "fresh":
            self.timelog.write_text("")

        records = []
        for stage in self.stages:
            self.check_preconditions(stage)

            started = datetime.now()
            self._write(f"{stage.description} started at:", started)
            logger.info(f"Stage '{stage.name}' started: {stage.description}")

            stage.run(self.ctx)

            finished = datetime.now()
            self._write(f"{stage.description} finished at:", finished)
            record = StageRecord(stage.name, stage.description, started, finished)
            logger.info(f"Stage '{stage.name}' finished in {record.elapsed:.1f}s")
            records.append(record)

        return records

    def check_preconditions(self, stage: Stage) -> None:
        for path in stage.preconditions(self.ctx):
            if not Path(path).exists():
                logger.error(f"Missing input for stage '{stage.name}': {path}")
                raise PreconditionError(stage.name, path)

    def _write(self, message: str, moment: datetime) -> None:
        with open(self.timelog, "a") as f:
            f.write(f"{message}\n{moment.strftime(TIMESTAMP_FORMAT)}\n")
