"""Terminal result of a pipeline run."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from swcforge.models.stages import PipelineStage, StageState


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ALREADY_APPLIED = "already_applied"


class PipelineResult(BaseModel):
    """Where a run stopped, how it ended, and why.

    ``exit_code`` is the process exit status the CLI reports.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    stage_reached: PipelineStage
    outcome: Outcome
    message: str
    error_code: str | None = None
    warnings: list[str] = []
    stages: dict[PipelineStage, StageState] = {}

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILURE

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
