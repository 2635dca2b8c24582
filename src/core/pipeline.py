"""
Ordered step pipelines over a typed request context.

An operation declares its context as a dataclass subclassing PipelineContext
and its behaviour as a list of async step functions. Each step reads and
writes named fields on the context; `completed` records which steps ran, so
tests can drive a single step in isolation or inspect how far a run got.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from src.core.logging import get_logger

logger = get_logger("pipeline")


@dataclass
class PipelineContext:
    completed: list[str] = field(default_factory=list, init=False)
    halted: bool = field(default=False, init=False)

    def halt(self) -> None:
        """Stop the pipeline after the current step without raising."""
        self.halted = True


C = TypeVar("C", bound=PipelineContext)
Step = Callable[[C], Awaitable[None]]


async def run_pipeline(ctx: C, steps: Sequence[Step]) -> C:
    """Run steps in order. Exceptions propagate and stop the pipeline."""
    for step in steps:
        await step(ctx)
        ctx.completed.append(step.__name__)
        if ctx.halted:
            logger.debug("pipeline halted", extra={"step": step.__name__})
            break
    return ctx
