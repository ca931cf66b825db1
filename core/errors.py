"""Typed failures raised by the screening pipeline and report lifecycle.

Every error carries a ``retryable`` flag. Image and inference problems are
expected runtime conditions that the caller may retry with the same or a new
image; lifecycle violations are sequencing bugs in the caller.
"""


class LesionScanError(Exception):
    """Base class for all LesionScan failures."""

    retryable = False


# --- Input image ---

class ImageError(LesionScanError):
    """The source image could not be turned into a model input."""

    retryable = True

    def __init__(self, image_ref: str, message: str):
        self.image_ref = image_ref
        super().__init__(f"{message}: {image_ref}")


class DecodeError(ImageError):
    """Raised when the image reference cannot be read or decoded."""


class UnsupportedFormatError(ImageError):
    """Raised when a decoded image cannot be converted to the model layout."""


# --- Inference engine ---

class EngineError(LesionScanError):
    """Base class for inference engine failures."""


class InferenceError(EngineError):
    """Raised when the inference backend fails to execute."""

    retryable = True


class BusyError(EngineError):
    """Raised when the engine is already running a call."""

    retryable = True


class ClosedResourceError(EngineError):
    """Raised when the engine is used after close()."""


class AnalysisTimeoutError(EngineError, TimeoutError):
    """Raised when an analysis does not finish within its timeout."""

    retryable = True


class AnalysisCancelledError(EngineError):
    """Raised when an analysis was cancelled and its result discarded."""


# --- Report lifecycle ---

class LifecycleError(LesionScanError):
    """A report operation was called in the wrong state."""

    def __init__(self, message: str, state=None):
        self.state = state
        super().__init__(message)


class InvalidTransitionError(LifecycleError):
    pass


class AnalysisInProgressError(LifecycleError):
    pass


class MissingImageError(LifecycleError):
    pass


class NotAnalyzedError(LifecycleError):
    pass


class NotSavedError(LifecycleError):
    pass


class NotSharedError(LifecycleError):
    pass


# --- Collaborators ---

class PersistenceError(LesionScanError):
    """Raised when the report store fails."""


class ReportNotFoundError(PersistenceError):
    """Raised when a report id is unknown to the store."""

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class ReportExportError(LesionScanError):
    """Raised when a report cannot be written to disk."""


class ConfigError(LesionScanError):
    """Raised when configuration values cannot be parsed."""
