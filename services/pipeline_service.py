import csv
import io
import logging
import os
import time
from typing import Iterable, List, Optional, Sequence

from core.exceptions import (
    CaptionFailed,
    DeadlineExceeded,
    ManifestFailed,
    PipelineError,
    PredictionFailed,
    RenameFailed,
    UploadFailed,
    ValidationFailed,
)
from schemas.upload_schema import BatchResult, FileResult, UploadItem
from services.caption_service import CaptionProvider
from services.storage_service import ObjectStore

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "results.csv"
MANIFEST_HEADER = ["URL", "Caption"]
SINGLE_UPLOAD_EXTENSION = ".jpg"


def caption_key(name: str, caption: str, extension: str) -> str:
    """Object key for a captioned image: spaces in the caption become hyphens."""
    return f"{name}/{caption.replace(' ', '-')}{extension}"


def build_manifest(results: Iterable[FileResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(MANIFEST_HEADER)
    for result in results:
        writer.writerow([result.url, result.caption])
    return buffer.getvalue()


class UploadPipeline:
    """
    Store an image, caption it, rename it after its caption.

    Everything runs sequentially inside the calling request. ``fail_fast``
    switches batch uploads from skipping failed files to aborting on the
    first failure.
    """

    def __init__(
        self,
        store: ObjectStore,
        captioner: CaptionProvider,
        fail_fast: bool = False,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.captioner = captioner
        self.fail_fast = fail_fast
        self.timeout = timeout

    def _deadline(self) -> Optional[float]:
        if self.timeout is None:
            return None
        return time.monotonic() + self.timeout

    @staticmethod
    def _check_deadline(deadline: Optional[float]) -> None:
        if deadline is not None and time.monotonic() >= deadline:
            raise DeadlineExceeded("Request deadline exceeded")

    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        if not name or not name.strip():
            raise ValidationFailed("Name field not found in the submitted form")
        return name

    def _process(self, name: str, item: UploadItem, extension: str, deadline: Optional[float]) -> FileResult:
        if not item.filename:
            raise ValidationFailed("Uploaded file has no filename")

        upload_key = f"{name}/{item.filename}"
        self._check_deadline(deadline)
        url = self.store.put(upload_key, item.file, item.content_type)

        self._check_deadline(deadline)
        try:
            result = self.captioner.caption(url, deadline=deadline)
        except PredictionFailed as e:
            raise CaptionFailed(f"Caption request for {upload_key} failed") from e

        new_key = caption_key(name, result.caption, extension)
        self._check_deadline(deadline)
        try:
            final_url = self.store.rename(upload_key, new_key)
        except RenameFailed as e:
            raise RenameFailed(e.message, url=url, caption=result.caption) from e

        return FileResult(url=final_url, caption=result.caption)

    def single_upload(self, name: str, item: UploadItem) -> FileResult:
        """
        Uploads one image and renames it after its caption.

        The renamed key always ends in ``.jpg``. On caption or rename failure
        the image stays stored under ``{name}/{filename}``.

        :raises ValidationFailed: Before any remote call if ``name`` is empty.
        :raises UploadFailed: If the image cannot be stored.
        :raises CaptionFailed: If the prediction fails.
        :raises RenameFailed: If copy or delete fails; carries the pre-rename url and caption.
        """
        name = self._validate_name(name)
        logger.info("Single upload of %s under %s", item.filename, name)
        return self._process(name, item, SINGLE_UPLOAD_EXTENSION, self._deadline())

    def batch_upload(self, name: str, items: Sequence[UploadItem]) -> BatchResult:
        """
        Uploads several images and writes a CSV manifest of the successful ones.

        Failed files are logged and skipped unless ``fail_fast`` is set. Each
        renamed key keeps the original file's extension. The manifest is
        required output: failing to build or store it fails the whole batch.
        """
        name = self._validate_name(name)
        if not items:
            raise ValidationFailed("No files found in the submitted form")

        deadline = self._deadline()
        results: List[FileResult] = []

        for index, item in enumerate(items):
            if deadline is not None and time.monotonic() >= deadline:
                if self.fail_fast:
                    raise DeadlineExceeded("Request deadline exceeded")
                logger.warning("Deadline passed, skipping %d remaining file(s)", len(items) - index)
                break

            extension = os.path.splitext(item.filename or "")[1]
            try:
                logger.info("Processing %s under %s", item.filename, name)
                results.append(self._process(name, item, extension, deadline))
            except (PipelineError, OSError) as e:
                if self.fail_fast:
                    raise
                logger.warning("Skipping %s: %s", item.filename, e)
                continue

        csv_url = self._upload_manifest(name, results)
        return BatchResult(files=results, csv_url=csv_url)

    def _upload_manifest(self, name: str, results: List[FileResult]) -> str:
        try:
            manifest = build_manifest(results)
        except csv.Error as e:
            logger.error("Error writing CSV: %s", e)
            raise ManifestFailed("Failed to generate CSV") from e

        key = f"{name}/{MANIFEST_FILENAME}"
        try:
            return self.store.put(key, manifest.encode("utf-8"), "text/csv")
        except UploadFailed as e:
            raise ManifestFailed("Failed writing CSV to the object store") from e
