import inspect
import logging
from typing import Awaitable, Callable, List, NamedTuple, Optional, Sequence, Union
from authop.readiness.result import READY, Failed, NotReady, Outcome
from authop.status.conditions import (
    Condition,
    handle_degraded,
    set_available_true,
    set_progressing_false,
    set_progressing_true,
    set_progressing_true_and_available_false,
)

logger = logging.getLogger(__name__)

#: Reason reported on Available once every check passed
AS_EXPECTED = "AsExpected"

CheckFn = Callable[[], Union[Outcome, Awaitable[Outcome]]]


class Stage(NamedTuple):
    """A named readiness check.

    When `degraded_prefix` is set the stage owns the `<prefix>Degraded`
    condition: it is raised on failure and cleared otherwise.
    `error_context` prefixes the error of a failed check.
    """

    name: str
    check: CheckFn
    degraded_prefix: Optional[str] = None
    error_context: str = "readiness check failed"


class ReadinessReport(NamedTuple):
    outcome: Outcome
    stage: Optional[str]
    conditions: List[Condition]

    @property
    def ready(self) -> bool:
        return self.outcome.ready

    @property
    def error(self) -> Optional[Exception]:
        return self.outcome.error if isinstance(self.outcome, Failed) else None


async def run_stage(stage: Stage) -> Outcome:
    """Run one check; anything it raises becomes the stage's failure."""
    try:
        outcome = stage.check()
        if inspect.isawaitable(outcome):
            outcome = await outcome
    except Exception as ex:
        logger.warning(f"Readiness stage `{stage.name}` raised: {ex!r}")
        return Failed(ex)
    return outcome


def apply_outcome(
    conditions: List[Condition], stage: Stage, outcome: Outcome
) -> List[Condition]:
    """Fold one stage outcome into the conditions."""
    if stage.degraded_prefix:
        err = outcome.error if isinstance(outcome, Failed) else None
        reason = outcome.reason if isinstance(outcome, Failed) else ""
        conditions = handle_degraded(conditions, stage.degraded_prefix, err, reason)

    if isinstance(outcome, NotReady):
        if outcome.available is None:
            conditions = set_progressing_true(conditions, outcome.reason, outcome.message)
        elif outcome.available:
            conditions = set_progressing_true(conditions, outcome.reason, outcome.message)
            conditions = set_available_true(conditions, outcome.available_reason)
        else:
            conditions = set_progressing_true_and_available_false(
                conditions, outcome.reason, outcome.message
            )
    return conditions


async def evaluate(
    stages: Sequence[Stage], conditions: List[Condition]
) -> ReadinessReport:
    """Run stages in order, stopping at the first one that is not ready.

    Later stages are never invoked once an earlier stage is not ready or
    failed. When every stage passes, Progressing is set False and Available
    True.
    """
    for stage in stages:
        outcome = await run_stage(stage)
        conditions = apply_outcome(conditions, stage, outcome)
        if not outcome.ready:
            logger.info(
                f"Readiness stage `{stage.name}` not ready: {outcome.message}"
            )
            return ReadinessReport(outcome, stage.name, conditions)

    conditions = set_progressing_false(conditions)
    conditions = set_available_true(conditions, AS_EXPECTED)
    return ReadinessReport(READY, None, conditions)
