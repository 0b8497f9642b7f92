from dataclasses import dataclass
from typing import BinaryIO, List, Optional

from pydantic import BaseModel


@dataclass
class UploadItem:
    """One uploaded file as handed from the router to the pipeline."""
    filename: Optional[str]
    file: BinaryIO
    content_type: Optional[str] = None


class FileResult(BaseModel):
    url: str
    caption: str


class BatchResult(BaseModel):
    files: List[FileResult]
    csv_url: str


class PartialResult(BaseModel):
    url: str
    caption: str


class ErrorResponse(BaseModel):
    detail: str
    code: str
    partial: Optional[PartialResult] = None
