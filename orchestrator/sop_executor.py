"""
SOP Executor

Purpose: Keep state-machine steps composable and testable with minimal
abstraction. Issuance and verification are both expressed as an ordered
list of named steps run over a state object.

Provides:
- SOPStep: Protocol for individual steps
- PipelineState: Base dataclass tracking progress and the first failure
- SOPExecutor: Runner that executes steps in sequence

A step reports failure by raising DocAnchorException (or a subclass). The
executor records the step name and the exception on the state; with
stop_on_error (the default) no later step runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, TypeVar

from core.schemas.errors import DocAnchorException, ErrorKinds


logger = logging.getLogger(__name__)


@dataclass
class PipelineState:
    """
    Progress of one state-machine run.

    Subclasses add the artifacts their steps produce.
    """

    completed_steps: list[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[DocAnchorException] = None
    errors: list[str] = field(default_factory=list)
    ok: bool = True

    def add_error(self, error: str) -> None:
        """Add an error message and mark state as not ok."""
        self.errors.append(error)
        self.ok = False

    def fail(self, step_name: str, error: DocAnchorException) -> None:
        """Record the failing step. Only the first failure is kept."""
        if self.failed_step is None:
            self.failed_step = step_name
            self.error = error
        self.add_error(f"{step_name}: {error.message}")


S = TypeVar("S", bound=PipelineState)


class SOPStep(Protocol):
    """
    Protocol for a single step.

    Each step has a name and a run method that transforms state.
    """

    @property
    def name(self) -> str:
        """Unique name for this step (the state it establishes)."""
        ...

    def run(self, state: PipelineState) -> PipelineState:
        """
        Execute this step, potentially modifying state.

        Raises:
            DocAnchorException: To fail the run at this step
        """
        ...


@dataclass
class FunctionStep:
    """
    Adapter to create SOPStep from a plain function.

    Example:
        step = FunctionStep("TreeBuilt", lambda s: build_tree(s))
    """

    _name: str
    _func: Callable[[PipelineState], PipelineState]

    @property
    def name(self) -> str:
        return self._name

    def run(self, state: PipelineState) -> PipelineState:
        return self._func(state)


class SOPExecutor:
    """
    Executor that runs a sequence of SOPSteps.

    Provides:
    - Sequential execution of steps
    - Conversion of step exceptions into recorded failures
    """

    def __init__(self, *, stop_on_error: bool = True):
        """
        Initialize executor.

        Args:
            stop_on_error: If True, stop execution on first step error.
                          If False, continue and aggregate errors.
        """
        self.stop_on_error = stop_on_error

    def execute(self, steps: list[SOPStep], state: S) -> S:
        """
        Execute all steps in sequence.

        Returns:
            Final state after all steps (or after the first failure)
        """
        for step in steps:
            try:
                state = step.run(state)
            except DocAnchorException as e:
                logger.info(f"Step {step.name} failed ({e.code}): {e.message}")
                state.fail(step.name, e)
            except Exception as e:
                logger.exception(f"Unexpected error in step {step.name}")
                wrapped = DocAnchorException(
                    f"Step '{step.name}' failed: {e}",
                    code=ErrorKinds.INTERNAL_ERROR,
                    details={"exception": type(e).__name__},
                )
                state.fail(step.name, wrapped)
            else:
                if state.ok:
                    state.completed_steps.append(step.name)

            if self.stop_on_error and not state.ok:
                break

        return state


def make_step(name: str, func: Callable[[PipelineState], PipelineState]) -> SOPStep:
    """
    Convenience function to create a step from a function.

    Args:
        name: Step name
        func: Function that takes and returns the state

    Returns:
        SOPStep wrapping the function
    """
    return FunctionStep(name, func)
