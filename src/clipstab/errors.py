"""Error handling module for the clipstab pipeline.

Provides the exception hierarchy shared by the analysis, storage and
rendering stages, plus a small context object for diagnostics.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


# =============================================================================
# Error Context
# =============================================================================

@dataclass
class ErrorContext:
    """Detailed context for debugging errors.

    Captures which stage and operation failed and, where known,
    the frame and files involved.
    """
    stage: str
    operation: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    frame_number: Optional[int] = None
    input_file: Optional[str] = None
    output_file: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "stage": self.stage,
            "operation": self.operation,
            "timestamp": self.timestamp,
            "frame_number": self.frame_number,
            "input_file": self.input_file,
            "output_file": self.output_file,
            "additional_info": self.additional_info,
        }

    def __str__(self) -> str:
        """Human-readable error context."""
        lines = [
            f"Stage: {self.stage}",
            f"Operation: {self.operation}",
            f"Timestamp: {self.timestamp}",
        ]

        if self.frame_number is not None:
            lines.append(f"Frame: {self.frame_number}")
        if self.input_file:
            lines.append(f"Input: {self.input_file}")
        if self.output_file:
            lines.append(f"Output: {self.output_file}")
        if self.additional_info:
            lines.append(f"Info: {self.additional_info}")

        return "\n".join(lines)


def create_error_context(
    stage: str,
    operation: str,
    frame_number: Optional[int] = None,
    input_file: Optional[Union[str, Path]] = None,
    output_file: Optional[Union[str, Path]] = None,
    **additional_info: Any
) -> ErrorContext:
    """Create an error context, normalizing paths to strings."""
    return ErrorContext(
        stage=stage,
        operation=operation,
        frame_number=frame_number,
        input_file=str(input_file) if input_file else None,
        output_file=str(output_file) if output_file else None,
        additional_info=additional_info,
    )


# =============================================================================
# Error Classification
# =============================================================================

class ClipStabError(Exception):
    """Base exception for all clipstab errors."""

    def __init__(self, message: str, context: Optional[ErrorContext] = None):
        super().__init__(message)
        self.context = context


class ConfigurationError(ClipStabError, ValueError):
    """Invalid configuration."""
    pass


class InvalidJSONError(ClipStabError, ValueError):
    """JSON is invalid (missing keys or invalid data types)."""
    pass


# Storage errors

class StoreError(ClipStabError):
    """Stabilization data could not be written or read.

    Attributes:
        path: File the store was operating on.
    """

    def __init__(
        self,
        message: str,
        path: Optional[Union[str, Path]] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message, context)
        self.path = Path(path) if path is not None else None


class StoreWriteError(StoreError):
    """Backing file is not writable."""
    pass


class StoreReadError(StoreError):
    """Backing file could not be opened or read."""
    pass


class MalformedRecordError(StoreError):
    """Backing file does not contain a valid stabilization record."""
    pass


# Lookup contract violations

class LookupContractError(ClipStabError, KeyError):
    """A table was queried for a frame index that was never produced.

    The analysis and rendering phases agree on frame coverage, so a
    missing key is a programming error and is never replaced by a
    default transform.
    """

    def __init__(
        self,
        frame_index: int,
        table: str = "corrections",
        context: Optional[ErrorContext] = None,
    ):
        message = f"No {table} entry for frame {frame_index}"
        super().__init__(message, context)
        self.frame_index = frame_index
        self.table = table

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class MissingFrameDataError(LookupContractError):
    """A frame was requested for rendering but has no stored correction."""
    pass


# Analysis errors

class AnalysisError(ClipStabError):
    """Error during clip motion analysis."""
    pass


class AnalysisCancelledError(AnalysisError):
    """Analysis was cancelled before the trajectory was computed."""
    pass


class InsufficientFramesError(AnalysisError):
    """The clip has no frames to analyze."""
    pass
