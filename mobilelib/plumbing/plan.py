"""
Best-effort execution of a sequence of independent actions.

Composite commands (e.g. deleting a mobile service and the resources backing it) build a `Plan`,
where each step may fail without preventing later steps from running.
"""

import logging
from typing import Any, List, NamedTuple, Optional

from ..errors import AggregateFailure, MobileError
from .channel import Context
from .common import Callback, Result, State, Work


LOG = logging.getLogger(__name__)


class Step(NamedTuple):
    """
    Single action of a plan, with messages to show as it starts, succeeds or fails.
    """

    progress: str
    success: str
    failure: str
    work: Work


class Reporter:
    """
    Receiver of progress updates whilst a plan runs.  The base implementation just logs them.
    """

    def started(self, step: Step) -> None:
        LOG.info(step.progress)

    def succeeded(self, step: Step) -> None:
        LOG.info(step.success)

    def failed(self, step: Step, error: Exception) -> None:
        LOG.error("%s: %s", step.failure, error)


class Plan:
    """
    Ordered list of steps, run one at a time:

        plan = Plan("delete")
        plan.add("Deleting table", "Deleted table", "Failed to delete table",
                 partial(delete_table, ctx, service, table))
        plan.run(ctx, callback)

    Each step starts only after the previous one has called back, whether or not it succeeded.
    A step whose work raises an exception instead of calling back is counted as failed.

    Once all steps have been attempted, the callback receives a `Result` collecting the values of
    successful steps, along with an `AggregateFailure` error if any step failed.
    """

    def __init__(self, noun: Optional[str] = None):
        self.noun = noun
        self.steps: List[Step] = []

    def add(self, progress: str, success: str, failure: str, work: Work) -> "Plan":
        self.steps.append(Step(progress, success, failure, work))
        return self

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def run(self, ctx: Context, callback: Callback, reporter: Optional[Reporter] = None) -> None:
        _Execution(ctx, self, callback, reporter or Reporter()).next(0)


class _Execution:

    def __init__(self, ctx: Context, plan: Plan, callback: Callback, reporter: Reporter):
        self._ctx = ctx
        self._plan = plan
        self._callback = callback
        self._reporter = reporter
        self.parts: List[Result[Any]] = []
        self.failures = 0

    def next(self, index: int) -> None:
        if index == len(self._plan.steps):
            self._finish()
            return
        step = self._plan.steps[index]
        self._reporter.started(step)
        fired = False

        def done(error: Optional[MobileError], value: Any = None) -> None:
            nonlocal fired
            if fired:
                LOG.warning("Ignoring repeated completion of step: %s", step.progress)
                return
            fired = True
            self._complete(index, step, error, value)

        try:
            step.work(callback=done)
        except Exception as ex:
            LOG.debug("Step raised instead of calling back: %s", step.progress, exc_info=True)
            if not fired:
                fired = True
                self._complete(index, step, ex, None)

    def _complete(self, index: int, step: Step, error: Optional[Exception], value: Any) -> None:
        if error is not None:
            self.failures += 1
            self._reporter.failed(step, error)
        else:
            self._reporter.succeeded(step)
            if isinstance(value, Result):
                self.parts.append(value)
            else:
                self.parts.append(Result(State.success, value, caller=Plan.run))
        self._ctx.reactor.call_soon(self.next, index + 1)

    def _finish(self) -> None:
        total = len(self._plan.steps)
        result = Result(None, self.failures, self.parts, Plan.run)
        if self.failures:
            LOG.debug("Plan finished with %d of %d steps failed", self.failures, total)
            self._callback(AggregateFailure(self.failures, total, self._plan.noun), result)
        else:
            self._callback(None, result)
