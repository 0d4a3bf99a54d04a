"""Pipeline stage state models — deterministic transitions."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class PipelineStage(str, Enum):
    """The stages of an install run, in execution order."""

    PREFLIGHT = "preflight"
    FETCH = "fetch"
    CHECKSUM = "checksum"
    INSTALL = "install"
    PATCH = "patch"
    VERIFY_LOAD = "verify_load"


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    WARNED = "warned"  # finished, with a non-fatal diagnostic
    FAILED = "failed"
    SKIPPED = "skipped"


# Valid state transitions, enforced by StageMachine.
# There is no retry edge: a failed run is re-invoked from scratch.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {StageState.RUNNING, StageState.SKIPPED},
    StageState.RUNNING: {StageState.PASSED, StageState.WARNED, StageState.FAILED},
    StageState.PASSED: set(),  # terminal
    StageState.WARNED: set(),  # terminal
    StageState.FAILED: set(),  # terminal
    StageState.SKIPPED: set(),  # terminal
}


class StageTransition(BaseModel):
    """Records a single state transition for the run summary."""

    model_config = ConfigDict(frozen=True)

    stage: PipelineStage
    from_state: StageState
    to_state: StageState
    detail: str | None = None


INSTALL_PLAN: list[PipelineStage] = [
    PipelineStage.PREFLIGHT,
    PipelineStage.FETCH,
    PipelineStage.CHECKSUM,
    PipelineStage.INSTALL,
    PipelineStage.PATCH,
    PipelineStage.VERIFY_LOAD,
]

PATCH_PLAN: list[PipelineStage] = [
    PipelineStage.PREFLIGHT,
    PipelineStage.PATCH,
]
