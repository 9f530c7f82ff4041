"""
Exception hierarchy for the Panel Reporter.

This module defines all custom exceptions used by the report pipeline and
its tools. Fatal errors abort the whole run (no partial PDF is saved);
recoverable ones are handled at their own component boundary.

Cancellation is NOT part of the hierarchy: a cancelled run is
a terminal state, not a failure, and must never be caught by a generic
``except PanelReporterException`` handler.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ErrorSeverity(Enum):
    """Categorizes the severity of errors for handling decisions."""

    CRITICAL = "critical"
    """Run should stop; this error prevents a meaningful report"""

    WARNING = "warning"
    """Log but continue; the report can still be produced"""

    INFO = "info"
    """Track but don't alarm; this is informational"""


@dataclass
class ProcessingError:
    """
    Structured record for a non-fatal finding during a run.

    Used for validation findings (duplicate row ids in a panel list, a logo
    that failed to load) that are logged and returned on the run outcome
    without stopping execution.
    """

    source: str
    """What was being processed (dashboard uid, panel id, settings file...)"""

    error_type: str
    """Category of error (e.g. "DUPLICATE_ROW_ID", "LOGO_LOAD_ERROR")"""

    message: str
    """Human-readable error message"""

    severity: ErrorSeverity
    """How serious is this error? CRITICAL/WARNING/INFO"""

    context: dict = field(default_factory=dict)
    """Additional context data (row id, occurrence index, etc.)"""

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "source": self.source,
            "error_type": self.error_type,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
        }


# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class PanelReporterException(Exception):
    """
    Base exception for all Panel Reporter errors.

    Inheriting from this allows catching all framework errors:
        try:
            ...
        except PanelReporterException as e:
            ...
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DataProcessingError(PanelReporterException):
    """Base class for errors while fetching or decoding inputs."""
    pass


class ValidationError(PanelReporterException):
    """Base class for input validation failures."""
    pass


class ConfigurationError(PanelReporterException):
    """Base class for configuration/setup issues."""
    pass


class PipelineError(PanelReporterException):
    """Base class for report pipeline execution errors."""
    pass


# ============================================================================
# CONFIGURATION EXCEPTIONS
# ============================================================================

class MissingDashboardContextError(ConfigurationError):
    """
    Raised when no dashboard identifier can be resolved for a run.

    The message is surfaced to the user verbatim.

    Example:
        raise MissingDashboardContextError(
            "Dashboard information was not available for this action."
        )
    """
    pass


class EnvConfigError(ConfigurationError):
    """
    Raised when required environment variables are missing.

    Example:
        raise EnvConfigError("Missing required env var: GRAFANA_URL")
    """
    pass


class LayoutSettingsError(ValidationError):
    """
    Raised when a layout settings file fails Pydantic validation.

    Example:
        raise LayoutSettingsError("layout.json: panels.perPage must be a number")
    """
    pass


# ============================================================================
# DATA FETCHING EXCEPTIONS
# ============================================================================

class DashboardFetchError(DataProcessingError):
    """
    Raised when the dashboard definition cannot be loaded.

    Example:
        raise DashboardFetchError("Dashboard 'abc123' returned HTTP 404")
    """
    pass


class LogoLoadError(DataProcessingError):
    """
    Raised when the branding logo cannot be downloaded or decoded.

    This is RECOVERABLE: the logo loader catches it, logs a warning and
    the report is produced without a logo.

    Example:
        raise LogoLoadError("Failed to download logo image.")
    """
    pass


# ============================================================================
# PIPELINE EXECUTION EXCEPTIONS
# ============================================================================

class EmptyPanelSetError(PipelineError):
    """
    Raised when flattening a dashboard yields zero renderable panels.

    Example:
        raise EmptyPanelSetError("No panels were found on this dashboard.")
    """
    pass


class RenderFailureError(PipelineError):
    """
    Raised when a single-panel render request fails or returns no image.

    The first failure (by completion order) aborts the whole run.

    Example:
        raise RenderFailureError(
            "The rendered image for panel 4 was empty.", panel_id=4
        )
    """

    def __init__(self, message: str, panel_id=None, status_code: Optional[int] = None):
        super().__init__(message)
        self.panel_id = panel_id
        self.status_code = status_code


class RenderCancelled(Exception):
    """
    Raised inside the render stage once the shared cancel event is set.

    Not a PanelReporterException: the pipeline turns it into a
    ``cancelled`` outcome instead of reporting an error.
    """

    def __init__(self, message: str = "Report generation cancelled."):
        super().__init__(message)
        self.message = message
