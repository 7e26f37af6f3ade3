"""Shared helpers for addon lifecycle handling."""

from __future__ import annotations

import abc
import time
from enum import Enum


class LifecycleStep(str, Enum):
    """A step in the lifecycle of an addon."""

    PREREQS = "prereqs"
    INSTALL = "install"
    VALIDATE = "validate"
    DELETE = "delete"


class ApplicationAssemblyPhase(str, Enum):
    """The phase an addon is in."""

    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    VALIDATION_FAILED = "Validation Failed"
    DEP_NOT_INSTALLED = "Dependency Not Installed"
    DEP_PENDING = "Dependency Pending"
    DELETING = "Deleting"
    DELETE_FAILED = "Delete Failed"
    DELETE_SUCCEEDED = "Delete Succeeded"


class WorkflowPhase(str, Enum):
    """The phase a workflow is in."""

    UNKNOWN = ""
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ERROR = "Error"


class Validator(abc.ABC):
    """Common interface for validators."""

    @abc.abstractmethod
    def validate(self) -> bool:
        """Return True when valid; raise on a validation error."""

    @abc.abstractmethod
    def validate_dependencies(self) -> None:
        """Raise when a dependency is not satisfied."""


_LIFECYCLE_NAMES = {step.value: step for step in LifecycleStep}


def contains_string(items, s: str) -> bool:
    """Return whether ``s`` is one of ``items``."""
    return s in items


def remove_string(items, s: str) -> list[str]:
    """Return ``items`` without any occurrence of ``s``."""
    return [item for item in items if item != s]


def current_timestamp_ms() -> int:
    """Return the current time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def is_expired(start_time: int, ttl: int) -> bool:
    """Return whether ``ttl`` milliseconds have passed since ``start_time``."""
    return current_timestamp_ms() - start_time >= ttl


def convert_workflow_phase_to_addon_phase(
    lifecycle: LifecycleStep, phase: WorkflowPhase
) -> ApplicationAssemblyPhase | None:
    """Map a workflow phase to the addon phase for the given lifecycle step.

    Returns None for phases with no addon counterpart.
    """
    deleting = lifecycle == LifecycleStep.DELETE
    if phase in (WorkflowPhase.PENDING, WorkflowPhase.RUNNING):
        return ApplicationAssemblyPhase.DELETING if deleting else ApplicationAssemblyPhase.PENDING
    if phase == WorkflowPhase.SUCCEEDED:
        return (
            ApplicationAssemblyPhase.DELETE_SUCCEEDED
            if deleting
            else ApplicationAssemblyPhase.SUCCEEDED
        )
    if phase in (WorkflowPhase.FAILED, WorkflowPhase.ERROR):
        return ApplicationAssemblyPhase.DELETE_FAILED if deleting else ApplicationAssemblyPhase.FAILED
    return None


def extract_checksum_and_lifecycle_step(workflow_name: str) -> tuple[str, LifecycleStep]:
    """Split ``<addon>-<lifecycle>-<checksum>-wf`` into checksum and step.

    Raises ValueError when the name does not have that form.
    """
    parts = workflow_name.split("-")
    if len(parts) < 4 or parts[-1].strip() != "wf":
        raise ValueError(f"invalid workflow name {workflow_name}")
    checksum = parts[-2].strip()
    step = _LIFECYCLE_NAMES.get(parts[-3].strip())
    if step is None:
        raise ValueError(f"invalid lifecycle in workflow name {workflow_name}")
    return checksum, step