"""
Error reporting for terminal fetch failures.
"""

import traceback
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

from shared.errors import DataAccessException, ReportingError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import DataAccessConfig
    from shared.metrics import MetricsCollector


class ErrorReport(BaseModel):
    """Payload sent to the error reporting transport."""

    message: str
    level: str = "error"
    error_type: Optional[str] = None
    code: Optional[str] = None
    stack: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    context: Dict[str, Any] = Field(default_factory=dict)


ReportTransport = Callable[[ErrorReport], None]


class ErrorReporter(ABC):
    """Receives terminal failures for telemetry.

    Implementations are fire-and-forget: they must never raise into the
    caller.
    """

    @abstractmethod
    def report_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """Report a terminal failure."""

    @abstractmethod
    def report_warning(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Report a recoverable problem."""


class LoggingErrorReporter(ErrorReporter):
    """Reporter that logs reports and, in production, hands them to a transport."""

    def __init__(
        self,
        production: bool = False,
        transport: Optional[ReportTransport] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.production = production
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("data_access.error_reporter")

    @classmethod
    def from_config(cls, config: "DataAccessConfig", **kwargs) -> "LoggingErrorReporter":
        return cls(production=config.is_production, **kwargs)

    def report_error(self, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        report = ErrorReport(
            message=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            code=error.code if isinstance(error, DataAccessException) else None,
            stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
            context=dict(context or {}),
        )
        self._dispatch(report)

    def report_warning(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        report = ErrorReport(message=message, level="warning", context=dict(context or {}))
        self._dispatch(report)

    def _dispatch(self, report: ErrorReport) -> None:
        if self.metrics:
            self.metrics.record_error_report(report.level)

        if not self.production:
            log = self.logger.warning if report.level == "warning" else self.logger.error
            log("Error report", **report.model_dump(exclude={"stack", "level"}))
            return

        if self.transport is None:
            self.logger.warning("No error reporting transport configured", message=report.message)
            return

        try:
            self.transport(report)
        except Exception as exc:
            failure = ReportingError(
                "Failed to send error report",
                details={"report_message": report.message, "error": str(exc)}
            )
            self.logger.error(
                "Error reporting transport failed",
                code=failure.code,
                details=failure.details
            )
