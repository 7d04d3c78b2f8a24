"""Named-stage pipelines for multi-step operations with side effects.

Stages run in order against a shared mutable context. An ``ABORT`` stage that
raises stops the run and re-raises; a ``CONTINUE`` stage that raises is logged
and recorded as failed, and the run moves on.
"""
from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

from arbitration_awards.observability.logging import get_logger

ContextT = TypeVar("ContextT")
T = TypeVar("T")

logger = get_logger("arbitration_awards.pipeline")


class FailurePolicy(StrEnum):
    ABORT = "abort"
    CONTINUE = "continue"


class StageStatus(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Stage(Generic[ContextT]):
    name: str
    run: Callable[[ContextT], None]
    policy: FailurePolicy = FailurePolicy.ABORT


@dataclass(slots=True, frozen=True)
class StageOutcome:
    name: str
    status: StageStatus
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"stage": self.name, "status": self.status.value}
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class PipelineReport:
    pipeline: str
    outcomes: list[StageOutcome] = field(default_factory=list)

    @property
    def failed_stages(self) -> list[str]:
        return [outcome.name for outcome in self.outcomes if outcome.status is StageStatus.FAILED]

    def succeeded(self, stage_name: str) -> bool:
        return any(
            outcome.name == stage_name and outcome.status is StageStatus.COMPLETED
            for outcome in self.outcomes
        )


class Pipeline(Generic[ContextT]):
    def __init__(self, name: str, stages: Sequence[Stage[ContextT]]) -> None:
        names = [stage.name for stage in stages]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate stage names in pipeline {name}")
        self.name = name
        self.stages = tuple(stages)

    def run(self, context: ContextT, **log_context: Any) -> PipelineReport:
        report = PipelineReport(pipeline=self.name)
        for stage in self.stages:
            try:
                stage.run(context)
            except Exception as exc:
                if stage.policy is FailurePolicy.ABORT:
                    logger.warning(
                        "pipeline_aborted",
                        pipeline=self.name,
                        stage=stage.name,
                        error=str(exc),
                        error_type=type(exc).__name__,
                        **log_context,
                    )
                    raise
                logger.warning(
                    "pipeline_stage_failed",
                    pipeline=self.name,
                    stage=stage.name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    **log_context,
                )
                report.outcomes.append(StageOutcome(stage.name, StageStatus.FAILED, str(exc)))
                continue
            report.outcomes.append(StageOutcome(stage.name, StageStatus.COMPLETED))
        logger.info(
            "pipeline_completed",
            pipeline=self.name,
            failed_stages=report.failed_stages,
            **log_context,
        )
        return report


def prepared(value: T | None, name: str) -> T:
    """Return a value an earlier stage stored on the run context."""
    if value is None:
        raise RuntimeError(f"pipeline stage ran before {name} was prepared")
    return value
