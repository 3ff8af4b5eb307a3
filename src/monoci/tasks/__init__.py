"""Per-directory task execution."""

from monoci.tasks.runner import run_directories, run_directory, run_toplevel
from monoci.tasks.types import TASKS, BundleMode, FailureRecord, RunPlan, TaskSpec, determine_plan

__all__ = [
    "TASKS",
    "BundleMode",
    "FailureRecord",
    "RunPlan",
    "TaskSpec",
    "determine_plan",
    "run_directories",
    "run_directory",
    "run_toplevel",
]
