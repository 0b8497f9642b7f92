import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx
import replicate
from replicate.exceptions import ReplicateException

from core.exceptions import DeadlineExceeded, PredictionFailed

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}

CaptionParser = Callable[[str], str]


@dataclass(frozen=True)
class CaptionResult:
    image_url: str
    caption: str


def caption_after_colon(output: str) -> str:
    """
    Caption models such as BLIP answer with ``"Caption: a dog on a beach"``.
    Returns the text after the first colon, or an empty string if there is none.
    """
    _, sep, caption = output.partition(":")
    if not sep:
        logger.info("No caption found in model output %r", output)
        return ""
    return caption.strip()


def output_to_text(output: Any) -> str:
    # Streaming models return a list of tokens
    if isinstance(output, str):
        return output
    if isinstance(output, (list, tuple)):
        return "".join(str(part) for part in output)
    return str(output)


class CaptionProvider:
    """
    Requests image captions from a Replicate model.

    ``model_identifier`` is either ``owner/name`` (latest version) or
    ``owner/name:version``.
    """

    def __init__(
        self,
        client: replicate.Client,
        model_identifier: str,
        parser: CaptionParser = caption_after_colon,
        poll_interval: float = 1.0,
    ):
        self.client = client
        self.model_identifier = model_identifier
        self.parser = parser
        self.poll_interval = poll_interval

    def _create_prediction(self, image_url: str):
        model, _, version = self.model_identifier.partition(":")
        payload = {"image": image_url}
        if version:
            return self.client.predictions.create(version=version, input=payload)
        return self.client.predictions.create(model=model, input=payload)

    def _wait(self, prediction, deadline: Optional[float]):
        while prediction.status not in TERMINAL_STATUSES:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Deadline passed, cancelling prediction %s", prediction.id)
                try:
                    prediction.cancel()
                except (ReplicateException, httpx.HTTPError) as e:
                    logger.error("Cancelling prediction %s failed: %s", prediction.id, e)
                raise DeadlineExceeded(f"Prediction {prediction.id} did not finish in time")
            time.sleep(self.poll_interval)
            prediction.reload()
        return prediction

    def caption(self, image_url: str, deadline: Optional[float] = None) -> CaptionResult:
        """
        Submits a prediction for ``image_url`` and blocks until it is terminal.

        :param deadline: Optional ``time.monotonic()`` timestamp after which the
            prediction is cancelled.
        :raises PredictionFailed: If the prediction cannot be created or does not succeed.
        :raises DeadlineExceeded: If the deadline passes while waiting.
        """
        try:
            prediction = self._create_prediction(image_url)
            logger.info("Created prediction %s for %s", prediction.id, image_url)
            prediction = self._wait(prediction, deadline)
        except (ReplicateException, httpx.HTTPError) as e:
            logger.error("Prediction for %s failed: %s", image_url, e)
            raise PredictionFailed(f"Prediction for {image_url} failed") from e

        if prediction.status != "succeeded":
            logger.error("Prediction %s ended with status %s: %s", prediction.id, prediction.status, prediction.error)
            raise PredictionFailed(f"Prediction {prediction.id} ended with status {prediction.status}")

        caption = self.parser(output_to_text(prediction.output))
        return CaptionResult(image_url=image_url, caption=caption)


def create_replicate_client(token: str) -> replicate.Client:
    return replicate.Client(api_token=token)
