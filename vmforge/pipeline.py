"""Per-run build state, step protocol, and a sequential step runner."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

from loguru import logger

if TYPE_CHECKING:
    from .driver import Driver, VMHandle
    from .ui import Ui

log = logger


class StepAction(enum.Enum):
    CONTINUE = 'continue'
    HALT = 'halt'


class BuildStatus(enum.Enum):
    PENDING = 'pending'
    RUNNING = 'running'
    SUCCEEDED = 'succeeded'
    HALTED = 'halted'
    CANCELLED = 'cancelled'

    @property
    def needs_rollback(self) -> bool:
        return self in (BuildStatus.HALTED, BuildStatus.CANCELLED)


@dataclass
class BuildState:
    """Everything one pipeline run shares between its steps.

    ``vm`` is set by the create step once the VM exists and is read by later
    steps and by cleanup. ``error`` holds the failure that halted the run.
    """

    ui: 'Ui'
    driver: 'Driver'
    vm: Optional['VMHandle'] = None
    error: Optional[BaseException] = None
    status: BuildStatus = BuildStatus.PENDING

    def halt(self, error: BaseException) -> StepAction:
        self.error = error
        return StepAction.HALT


class Step(Protocol):
    def run(self, state: BuildState) -> StepAction: ...

    def cleanup(self, state: BuildState) -> None: ...


class Runner:
    """Run steps in order and unwind their cleanups in reverse.

    :meth:`cancel` may be called from another thread; it takes effect before
    the next step starts.
    """

    def __init__(self, steps: Sequence[Step]):
        self.steps = list(steps)
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        log.debug('Cancel requested')
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, state: BuildState) -> BuildState:
        state.status = BuildStatus.RUNNING
        started: list[Step] = []
        try:
            for step in self.steps:
                if self.cancelled:
                    state.status = BuildStatus.CANCELLED
                    break
                name = type(step).__name__
                log.debug('Running step {}', name)
                started.append(step)
                try:
                    action = step.run(state)
                except Exception as ex:
                    log.error('Step {} raised: {}', name, ex)
                    action = state.halt(ex)
                if action is StepAction.HALT:
                    state.status = BuildStatus.HALTED
                    break
            else:
                state.status = (
                    BuildStatus.CANCELLED if self.cancelled
                    else BuildStatus.SUCCEEDED
                )
        finally:
            if state.status is BuildStatus.RUNNING:
                state.status = BuildStatus.CANCELLED
            log.debug('Pipeline finished with status {}', state.status.value)
            for step in reversed(started):
                log.debug('Cleaning up step {}', type(step).__name__)
                step.cleanup(state)
        return state
