# backend/relay.py

import asyncio
import logging
from typing import Optional

import httpx

from config.settings import settings

from .errors import (
    ConfigurationError,
    GenerationFailedError,
    GenerationTimeoutError,
    ProviderError,
    ValidationError,
)
from .model import GenerateRequest, GenerationResult
from .payload_builder import model_for_mode
from .replicate_client import (
    PollPolicy,
    RetryPolicy,
    Sleep,
    poll_policy_for,
    poll_prediction,
    resolve_output,
    submit_prediction,
)

logger = logging.getLogger(__name__)


def validate_request(req: GenerateRequest) -> None:
    if not req.reference_images:
        raise ValidationError("At least one reference image is required")
    if len(req.reference_images) > settings.MAX_REFERENCE_IMAGES:
        raise ValidationError(
            f"At most {settings.MAX_REFERENCE_IMAGES} reference images are allowed"
        )
    if not req.prompt or not req.prompt.strip():
        raise ValidationError("Prompt is required")


def require_api_token() -> str:
    token = settings.api_token()
    if not token:
        raise ConfigurationError("REPLICATE_API_TOKEN not configured in .env")
    return token


async def generate(
    client: httpx.AsyncClient,
    req: GenerateRequest,
    *,
    sleep: Sleep = asyncio.sleep,
    poll_policy: Optional[PollPolicy] = None,
) -> GenerationResult:
    """
    Validate, submit, poll and resolve one generation request.
    Either returns a single output URL or raises a RelayError.
    """
    validate_request(req)
    api_token = require_api_token()

    mode = req.mode
    model = model_for_mode(mode)
    prompt = req.prompt.strip()
    policy = poll_policy or poll_policy_for(mode)

    logger.info(
        "[Relay] %s request, model=%s, images=%d, prompt=%s...",
        mode, model, len(req.reference_images), prompt[:50],
    )

    prediction = await submit_prediction(
        client,
        mode,
        req.reference_images,
        prompt,
        api_token=api_token,
        retry=RetryPolicy(default_retry_after=settings.DEFAULT_RETRY_AFTER),
        sleep=sleep,
    )
    result = await poll_prediction(
        client, prediction, api_token=api_token, policy=policy, sleep=sleep
    )

    label = "Video" if mode == "video" else "Image"

    if result.status == "succeeded":
        output_url = resolve_output(result.output)
        if not output_url:
            raise ProviderError(f"{label} generation returned no output", result.output)
        logger.info("[Relay] Prediction %s succeeded: %s", result.id, output_url)
        return GenerationResult(output_url=output_url, type=mode, model=model)

    if result.status in ("failed", "canceled"):
        logger.warning("[Relay] Prediction %s %s: %s", result.id, result.status, result.error)
        raise GenerationFailedError(f"{label} generation failed", result.error)

    raise GenerationTimeoutError(
        f"{label} generation timed out",
        f"Prediction {result.id} still {result.status} after {policy.max_attempts} polls",
    )
