"""Batch processing for multiple projects.

This module provides classes for analyzing several projects in parallel:

- analyze_project: Validate, fit, select and bootstrap one project
- BatchProcessor: Main orchestrator for batch processing workflows
- ProjectResult / BatchResult: Per-project and combined outcomes
"""

from .processor import (
    BatchConfig,
    BatchProcessor,
    BatchResult,
    ProjectResult,
    analyze_project,
    save_project_outputs,
)

__all__ = [
    "BatchConfig",
    "BatchProcessor",
    "BatchResult",
    "ProjectResult",
    "analyze_project",
    "save_project_outputs",
]
