"""
Exception types raised by the league ability pipeline.
"""

from __future__ import annotations


class ScheduleError(ValueError):
    """Match list is inconsistent with a double round-robin league."""


class InferenceFailure(RuntimeError):
    """
    A checkpoint fit could not be used.

    Raised when sampling fails outright or when convergence diagnostics
    fall outside the configured bounds. The controller records the failure
    against the checkpoint and never substitutes another checkpoint's draws.
    """

    def __init__(self, checkpoint: int, message: str, diagnostics: dict | None = None):
        super().__init__(f"Checkpoint {checkpoint}: {message}")
        self.checkpoint = checkpoint
        self.message = message
        self.diagnostics = diagnostics or {}

    def __reduce__(self):
        # Rebuilt from the original arguments when returned by a worker process
        return (self.__class__, (self.checkpoint, self.message, self.diagnostics))


class MissingCheckpointError(LookupError):
    """A forecast needs a checkpoint or timeline cell that does not exist."""
