"""
Error reporting package.
"""

from .error_reporter import ErrorReport, ErrorReporter, LoggingErrorReporter

__all__ = ["ErrorReport", "ErrorReporter", "LoggingErrorReporter"]
