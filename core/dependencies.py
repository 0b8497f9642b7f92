from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from core.config import settings
from services.caption_service import CaptionProvider, create_replicate_client
from services.pipeline_service import UploadPipeline
from services.storage_service import ObjectStore, create_s3_client


# Services only hold configuration, one instance is shared by all requests.
@lru_cache
def get_object_store() -> ObjectStore:
    client = create_s3_client(
        region=settings.AWS_REGION,
        access_key=settings.AWS_ACCESS_KEY_ID,
        secret_key=settings.AWS_SECRET_ACCESS_KEY,
        endpoint_url=settings.S3_ENDPOINT_URL,
    )
    return ObjectStore(
        client,
        bucket=settings.BUCKET_NAME,
        host=settings.STORE_HOST,
        wait_delay=settings.WAIT_DELAY_SECONDS,
        wait_max_attempts=settings.WAIT_MAX_ATTEMPTS,
    )


@lru_cache
def get_caption_provider() -> CaptionProvider:
    return CaptionProvider(
        create_replicate_client(settings.REPLICATE_API_TOKEN),
        settings.REPLICATE_MODEL_IDENTIFIER,
        poll_interval=settings.PREDICTION_POLL_SECONDS,
    )


def get_pipeline(
    store: Annotated[ObjectStore, Depends(get_object_store)],
    captioner: Annotated[CaptionProvider, Depends(get_caption_provider)],
) -> UploadPipeline:
    return UploadPipeline(
        store,
        captioner,
        fail_fast=settings.BATCH_FAIL_FAST,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )


pipeline_dependency = Annotated[UploadPipeline, Depends(get_pipeline)]
