"""
Media Processing Layer.

This package wraps the external media tools: locating them, running them,
computing the trim filter, and checking produced files.
"""

from .integrity import FileIntegrityChecker
from .process import ProcessResult, ProcessRunner
from .segments import build_filter_expression, keep_segments
from .tools import ToolAvailability, ToolLocator

__all__ = [
    "FileIntegrityChecker",
    "ProcessResult",
    "ProcessRunner",
    "ToolAvailability",
    "ToolLocator",
    "build_filter_expression",
    "keep_segments",
]
