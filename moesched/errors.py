"""Exception hierarchy shared by the scheduler components."""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the scheduler package."""

    label = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"


class ModelLoadError(SchedulerError):
    """A model could not be downloaded, found or read."""

    label = "model load error"


class InferenceError(SchedulerError):
    """Task data, splitting or merging was inconsistent with the model."""

    label = "inference error"


class GpuError(SchedulerError):
    """A GPU resource problem."""

    label = "GPU error"