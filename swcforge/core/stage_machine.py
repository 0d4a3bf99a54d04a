"""Deterministic stage state machine for one pipeline run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Stages start in plan order; a stage cannot run before its predecessor
  has finished
- Remaining stages are SKIPPED once a stage fails
- Every transition recorded for the run summary
"""

from __future__ import annotations

import logging

from swcforge.models.stages import (
    VALID_TRANSITIONS,
    PipelineStage,
    StageState,
    StageTransition,
)

logger = logging.getLogger(__name__)

_FINISHED = (StageState.PASSED, StageState.WARNED)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StageMachine:
    """Tracks stage states for a single run.

    Parameters
    ----------
    plan:
        The stages of this run, in execution order.
    """

    def __init__(self, plan: list[PipelineStage]) -> None:
        self._plan = list(plan)
        self._states: dict[PipelineStage, StageState] = {
            stage: StageState.NOT_STARTED for stage in self._plan
        }
        self._history: list[StageTransition] = []

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[StageTransition]:
        return list(self._history)

    def get_current_state(self, stage: PipelineStage) -> StageState:
        return self._states[stage]

    def get_all_states(self) -> dict[PipelineStage, StageState]:
        return dict(self._states)

    def last_started(self) -> PipelineStage:
        """The furthest stage that left NOT_STARTED (first stage if none)."""
        reached = self._plan[0]
        for stage in self._plan:
            if self._states[stage] not in (StageState.NOT_STARTED, StageState.SKIPPED):
                reached = stage
        return reached

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(
        self,
        stage: PipelineStage,
        target_state: StageState,
        *,
        detail: str | None = None,
    ) -> StageTransition:
        """Move *stage* to *target_state*, recording the transition."""
        if stage not in self._states:
            raise InvalidTransitionError(f"Stage {stage.value} is not part of this run")

        current = self._states[stage]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage.value} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state == StageState.RUNNING:
            index = self._plan.index(stage)
            if index > 0 and self._states[self._plan[index - 1]] not in _FINISHED:
                previous = self._plan[index - 1]
                raise InvalidTransitionError(
                    f"Cannot start {stage.value}: {previous.value} is "
                    f"{self._states[previous].value}"
                )

        record = StageTransition(
            stage=stage,
            from_state=current,
            to_state=target_state,
            detail=detail,
        )
        self._history.append(record)
        self._states[stage] = target_state
        logger.debug("%s: %s -> %s", stage.value, current.value, target_state.value)

        if target_state == StageState.FAILED:
            self._skip_remaining(stage)

        return record

    def _skip_remaining(self, failed: PipelineStage) -> None:
        for stage in self._plan[self._plan.index(failed) + 1:]:
            if self._states[stage] == StageState.NOT_STARTED:
                self.transition(stage, StageState.SKIPPED, detail=f"{failed.value} failed")
