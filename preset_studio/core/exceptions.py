"""
Error Taxonomy

Every failure the pipeline surfaces is one of the classes below. All of
them are terminal for the current call: nothing is retried internally,
and the host route layer maps ``code`` onto its HTTP response.
"""

from typing import Optional, Dict, Any, Iterable

from preset_studio.core.logging import job_id_var


class PresetStudioError(Exception):
    """Base exception for the composition pipeline."""
    
    def __init__(
        self,
        message: str,
        code: int = 500,
        job_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.job_id = job_id or job_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Structured form for error responses and log lines."""
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "job_id": self.job_id,
            "code": self.code,
            "stage": self.stage,
            "details": self.details,
        }


class ValidationError(PresetStudioError):
    """Raised when caller input is rejected before any processing."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class UnknownPresetError(ValidationError):
    """Raised when a preset name is not one of the registered layouts."""
    
    def __init__(self, preset: Optional[str], available: Iterable[str] = (), **kwargs):
        super().__init__(f"Unknown preset: {preset}", **kwargs)
        self.preset = preset
        self.details["preset"] = preset
        self.details["available"] = sorted(available)


class FetchTimeoutError(PresetStudioError):
    """Raised when a remote source does not respond within the fetch bound."""
    
    def __init__(self, url: str, timeout_seconds: float, **kwargs):
        super().__init__("Image fetch timeout", code=504, stage="acquire", **kwargs)
        self.details["url"] = url
        self.details["timeout_seconds"] = timeout_seconds


class FetchFailedError(PresetStudioError):
    """Raised when a remote source answers with a non-success status."""
    
    def __init__(self, status_text: str, http_status: Optional[int] = None, **kwargs):
        super().__init__(
            f"Failed to fetch image: {status_text}",
            code=502,
            stage="acquire",
            **kwargs
        )
        self.status_text = status_text
        self.details["status_text"] = status_text
        self.details["http_status"] = http_status


class FilesystemError(PresetStudioError):
    """Raised when reading, writing, creating or deleting a path fails."""
    
    def __init__(self, operation: str, path: str, reason: str = "", **kwargs):
        message = f"Filesystem {operation} failed for {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, code=500, **kwargs)
        self.operation = operation
        self.details["operation"] = operation
        self.details["path"] = path


class BackgroundRemovalError(PresetStudioError):
    """Raised when the segmentation function fails."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=500, stage="rembg", **kwargs)


class EncodingError(PresetStudioError):
    """Raised when an image cannot be decoded, measured or encoded."""
    
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=422, **kwargs)
