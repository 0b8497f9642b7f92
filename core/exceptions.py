"""
Error types raised by the upload pipeline and its services.

Every error carries a short machine readable ``code`` that the HTTP layer
returns next to a generic message. Details stay in the server logs.
"""
from typing import Optional


class PipelineError(Exception):
    code = "pipeline_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(PipelineError):
    code = "validation_failed"


class UploadFailed(PipelineError):
    code = "upload_failed"


class PredictionFailed(PipelineError):
    code = "prediction_failed"


class CaptionFailed(PipelineError):
    code = "caption_failed"


class RenameFailed(PipelineError):
    """
    Copy or delete leg of a rename failed.

    When raised by the pipeline after a caption was produced, ``url`` and
    ``caption`` describe the object still stored under its original key.
    """
    code = "rename_failed"

    def __init__(self, message: str, url: Optional[str] = None, caption: Optional[str] = None):
        super().__init__(message)
        self.url = url
        self.caption = caption


class ManifestFailed(PipelineError):
    code = "manifest_failed"


class DeadlineExceeded(PipelineError):
    code = "deadline_exceeded"
