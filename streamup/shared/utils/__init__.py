"""
Utility helpers for shared packages.
"""

from .log import format_error, init_logger, log_taskgroup_errors

__all__ = ["format_error", "init_logger", "log_taskgroup_errors"]
