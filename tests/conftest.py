"""
Shared fixtures. The environment has to be in place before ``core.config``
is imported, otherwise ``Settings()`` refuses the missing values.
"""
import os

os.environ.setdefault("BUCKET_NAME", "test-bucket")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("REPLICATE_API_TOKEN", "r8_test")
os.environ.setdefault("REPLICATE_MODEL_IDENTIFIER", "salesforce/blip:abc123")
os.environ.setdefault("WAIT_DELAY_SECONDS", "0")
os.environ.setdefault("WAIT_MAX_ATTEMPTS", "2")

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from core.exceptions import PredictionFailed
from services.caption_service import CaptionResult
from services.storage_service import ObjectStore

BUCKET = "test-bucket"


def key_exists(s3, key):
    try:
        s3.head_object(Bucket=BUCKET, Key=key)
    except ClientError:
        return False
    return True


def list_keys(s3, prefix):
    response = s3.list_objects_v2(Bucket=BUCKET, Prefix=prefix)
    return [obj["Key"] for obj in response.get("Contents", [])]


class FakeCaptioner:
    """Stands in for CaptionProvider; answers from a url -> caption mapping."""

    def __init__(self, captions=None, default="a photo", fail_for=()):
        self.captions = captions or {}
        self.default = default
        self.fail_for = set(fail_for)
        self.calls = []

    def caption(self, image_url, deadline=None):
        self.calls.append(image_url)
        if any(marker in image_url for marker in self.fail_for):
            raise PredictionFailed(f"prediction failed for {image_url}")
        for marker, caption in self.captions.items():
            if marker in image_url:
                return CaptionResult(image_url=image_url, caption=caption)
        return CaptionResult(image_url=image_url, caption=self.default)


@pytest.fixture
def s3():
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def store(s3):
    return ObjectStore(s3, BUCKET, wait_delay=0, wait_max_attempts=2)


@pytest.fixture
def captioner():
    return FakeCaptioner()
