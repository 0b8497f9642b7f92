import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from core.exceptions import RenameFailed, UploadFailed

logger = logging.getLogger(__name__)

PUBLIC_READ = "public-read"


class RenameState(str, Enum):
    PENDING = "pending"
    COPIED = "copied"
    VISIBLE = "visible"
    NOT_VISIBLE = "not_visible"
    DELETED = "deleted"
    GONE = "gone"
    NOT_GONE = "not_gone"


@dataclass
class RenameOperation:
    """
    Progress of a copy-then-delete rename.

    The store has no atomic rename, so a rename moves through
    copied -> visible|not_visible -> deleted -> gone|not_gone.
    A failed delete leaves the operation before ``deleted`` with data at both keys.
    """
    old_key: str
    new_key: str
    state: RenameState = RenameState.PENDING

    @property
    def completed(self) -> bool:
        return self.state in (RenameState.GONE, RenameState.NOT_GONE)


class ObjectStore:
    """
    Thin wrapper around a boto3 S3 client bound to one bucket.
    Every object written through it is public-read.
    """

    def __init__(
        self,
        client,
        bucket: str,
        host: str = "s3.amazonaws.com",
        wait_delay: int = 5,
        wait_max_attempts: int = 6,
    ):
        self.client = client
        self.bucket = bucket
        self.host = host
        self.wait_delay = wait_delay
        self.wait_max_attempts = wait_max_attempts

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.{self.host}/{quote(key, safe='/')}"

    def put(self, key: str, body: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> str:
        """
        Uploads content to the bucket with public-read visibility.

        :param key: The full path/key in the bucket (e.g., 'holiday/beach.jpg').
        :param body: Raw bytes or a readable binary file object.
        :param content_type: Optional MIME type stored with the object.
        :return: The public URL of the stored object.
        :raises UploadFailed: If the store rejects the upload.
        """
        if isinstance(body, (bytes, bytearray)):
            body = io.BytesIO(body)

        extra_args = {"ACL": PUBLIC_READ}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self.client.upload_fileobj(body, self.bucket, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            logger.error("Upload of %s to %s failed: %s", key, self.bucket, e)
            raise UploadFailed(f"Failed to upload {key}") from e

        logger.info("Uploaded %s to %s", key, self.bucket)
        return self.public_url(key)

    def copy(self, old_key: str, new_key: str) -> None:
        self.client.copy_object(
            Bucket=self.bucket,
            CopySource={"Bucket": self.bucket, "Key": old_key},
            Key=new_key,
            ACL=PUBLIC_READ,
        )

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)

    def _wait(self, waiter_name: str, key: str) -> bool:
        waiter = self.client.get_waiter(waiter_name)
        try:
            waiter.wait(
                Bucket=self.bucket,
                Key=key,
                WaiterConfig={"Delay": self.wait_delay, "MaxAttempts": self.wait_max_attempts},
            )
        except WaiterError as e:
            logger.warning("%s gave up on %s: %s", waiter_name, key, e)
            return False
        return True

    def wait_until_exists(self, key: str) -> bool:
        """Polls until ``key`` is visible. Returns False if polling ran out."""
        return self._wait("object_exists", key)

    def wait_until_gone(self, key: str) -> bool:
        """Polls until ``key`` is no longer visible. Returns False if polling ran out."""
        return self._wait("object_not_exists", key)

    def rename(self, old_key: str, new_key: str) -> str:
        """
        Renames an object by copying it to ``new_key`` and deleting ``old_key``.

        Polling timeouts after the copy or the delete are logged and ignored:
        both calls already succeeded synchronously. A failed delete after a
        successful copy is reported and the copy is kept (no rollback).

        :return: The public URL of ``new_key``.
        :raises RenameFailed: If the copy or the delete call fails.
        """
        if old_key == new_key:
            logger.info("%s already matches its caption, nothing to rename", old_key)
            return self.public_url(new_key)

        operation = RenameOperation(old_key, new_key)
        self.start_rename(operation)
        self.finish_rename(operation)
        logger.info("Renamed %s to %s", old_key, new_key)
        return self.public_url(new_key)

    def start_rename(self, operation: RenameOperation) -> RenameOperation:
        """Copy phase: copy the object and wait for the new key to appear."""
        logger.debug("Copying %s to %s", operation.old_key, operation.new_key)
        try:
            self.copy(operation.old_key, operation.new_key)
        except (ClientError, BotoCoreError) as e:
            logger.error("Copy of %s to %s failed: %s", operation.old_key, operation.new_key, e)
            raise RenameFailed(f"Failed to copy {operation.old_key} to {operation.new_key}") from e
        operation.state = RenameState.COPIED

        if self.wait_until_exists(operation.new_key):
            operation.state = RenameState.VISIBLE
        else:
            operation.state = RenameState.NOT_VISIBLE
        return operation

    def finish_rename(self, operation: RenameOperation) -> RenameOperation:
        """Delete phase: remove the old key and wait for it to disappear."""
        try:
            self.delete(operation.old_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Delete of %s failed after copy, object now exists at %s and %s: %s",
                operation.old_key, operation.old_key, operation.new_key, e,
            )
            raise RenameFailed(f"Failed to delete {operation.old_key}") from e
        operation.state = RenameState.DELETED

        if self.wait_until_gone(operation.old_key):
            operation.state = RenameState.GONE
        else:
            operation.state = RenameState.NOT_GONE
        return operation
