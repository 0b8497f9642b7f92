import logging
from typing import List

from fastapi import APIRouter, File, Form, UploadFile

from core.dependencies import pipeline_dependency
from schemas.upload_schema import BatchResult, ErrorResponse, FileResult, UploadItem

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["upload"],
    responses={500: {"model": ErrorResponse}},
)


def _to_item(upload: UploadFile) -> UploadItem:
    return UploadItem(filename=upload.filename, file=upload.file, content_type=upload.content_type)


# Plain `def` routes: FastAPI runs the blocking pipeline in its threadpool.

@router.post("/upload", response_model=FileResult)
def upload(pipeline: pipeline_dependency, file: UploadFile = File(...), name: str = Form("")):
    """
    Stores one image, captions it and renames it after the caption.
    """
    return pipeline.single_upload(name, _to_item(file))


@router.post("/upload_multiple", response_model=BatchResult)
def upload_multiple(pipeline: pipeline_dependency, files: List[UploadFile] = File(...), name: str = Form("")):
    """
    Same as /upload for every file; failed files are skipped and the
    successful ones are listed in a CSV manifest stored at {name}/results.csv.
    """
    logger.info("Batch upload of %d file(s) under %r", len(files), name)
    return pipeline.batch_upload(name, [_to_item(f) for f in files])
