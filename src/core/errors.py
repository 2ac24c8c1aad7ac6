# core/errors.py
import logging
from contextlib import contextmanager
from typing import Optional

from numba import cuda

logger = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """Base class for fatal renderer failures."""


class SceneError(RenderError):
    """The scene description cannot be rendered as given."""


class AllocationError(RenderError):
    """A device buffer could not be allocated."""

    def __init__(self, name: str, shape, dtype, cause: Optional[BaseException] = None):
        self.name = name
        self.shape = shape
        self.dtype = dtype
        message = f"failed to allocate device buffer '{name}' (shape={shape}, dtype={dtype})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class KernelLaunchError(RenderError):
    """A kernel launch, or the barrier that closes its stage, failed."""

    def __init__(self, stage: str, iteration: Optional[int] = None,
                 depth: Optional[int] = None, cause: Optional[BaseException] = None):
        self.stage = stage
        self.iteration = iteration
        self.depth = depth
        location = []
        if iteration is not None:
            location.append(f"iteration={iteration}")
        if depth is not None:
            location.append(f"depth={depth}")
        message = f"stage '{stage}' failed"
        if location:
            message += f" at {', '.join(location)}"
        if cause is not None:
            message += f": {type(cause).__name__}: {cause}"
        super().__init__(message)


@contextmanager
def kernel_stage(stage: str, iteration: Optional[int] = None, depth: Optional[int] = None):
    """
    Wrap the launches of one pipeline stage.

    The stage is closed by a full device barrier so the next stage only ever
    sees complete outputs. Any launch or device fault is re-raised as a
    KernelLaunchError carrying the stage name and location.
    """
    try:
        yield
        cuda.synchronize()
    except RenderError:
        raise
    except Exception as exc:
        logger.error("Kernel stage %s failed (iteration=%s, depth=%s)", stage, iteration, depth)
        raise KernelLaunchError(stage, iteration, depth, exc) from exc
