# backend/replicate_client.py

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import pydantic

from config.settings import settings

from .errors import ProviderError, RateLimitedError
from .model import Mode, Prediction
from .payload_builder import build_prediction_body, predictions_endpoint

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    default_retry_after: int = 3
    # Extra second on top of the provider hint before resubmitting
    padding: int = 1


@dataclass(frozen=True)
class PollPolicy:
    interval: float = 1.0
    max_attempts: int = 180


def poll_policy_for(mode: Mode) -> PollPolicy:
    max_attempts = settings.VIDEO_MAX_ATTEMPTS if mode == "video" else settings.IMAGE_MAX_ATTEMPTS
    return PollPolicy(interval=settings.POLL_INTERVAL, max_attempts=max_attempts)


def _auth_headers(api_token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_token}",
        "Content-Type": "application/json",
    }


def retry_after_hint(response: httpx.Response, default: int) -> int:
    """
    Seconds to wait after a 429. Replicate puts `retry_after` in the JSON body;
    the Retry-After header is used when the body has none.
    """
    value: Any = None
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        value = data.get("retry_after")
    if value is None:
        value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(0, math.ceil(float(value)))
    except (TypeError, ValueError):
        return default


def parse_prediction(response: httpx.Response) -> Prediction:
    """A 2xx whose body is not a prediction is a provider failure."""
    try:
        return Prediction.model_validate(response.json())
    except (ValueError, pydantic.ValidationError):
        logger.error("[Replicate] Unreadable response from %s: %s", response.request.url, response.text[:300])
        raise ProviderError("Invalid response from Replicate", response.text, status_code=500)


async def _post_prediction(
    client: httpx.AsyncClient, url: str, body: Dict[str, Any], api_token: str
) -> httpx.Response:
    return await client.post(url, json=body, headers=_auth_headers(api_token))


async def submit_prediction(
    client: httpx.AsyncClient,
    mode: Mode,
    reference_images: list,
    prompt: str,
    *,
    api_token: str,
    retry: RetryPolicy = RetryPolicy(),
    sleep: Sleep = asyncio.sleep,
) -> Prediction:
    """
    POST a new prediction. A 429 is retried once after the provider's hint
    plus one second; a second 429 raises RateLimitedError.
    """
    url = predictions_endpoint(mode)
    body = build_prediction_body(mode, reference_images, prompt)

    r = await _post_prediction(client, url, body, api_token)

    if r.status_code == 429:
        wait = retry_after_hint(r, retry.default_retry_after)
        logger.warning("[Replicate] Rate limited, retrying once in %ss", wait + retry.padding)
        await sleep(wait + retry.padding)
        r = await _post_prediction(client, url, body, api_token)
        if r.status_code == 429:
            retry_after = retry_after_hint(r, retry.default_retry_after)
            logger.error("[Replicate] Still rate limited after retry: %s", r.text[:300])
            raise RateLimitedError(retry_after)

    if not r.is_success:
        logger.error("[Replicate] Submission failed with %s: %s", r.status_code, r.text[:500])
        raise ProviderError("Replicate API error", r.text, status_code=r.status_code)

    prediction = parse_prediction(r)
    logger.info("[Replicate] Prediction created: %s (status=%s)", prediction.id, prediction.status)
    return prediction


def fallback_poll_url(prediction_id: str) -> str:
    base = settings.REPLICATE_API_BASE.rstrip("/")
    return f"{base}/predictions/{prediction_id}"


async def poll_prediction(
    client: httpx.AsyncClient,
    prediction: Prediction,
    *,
    api_token: str,
    policy: PollPolicy = PollPolicy(),
    sleep: Sleep = asyncio.sleep,
) -> Prediction:
    """
    Poll until the prediction reaches succeeded/failed/canceled or the
    attempt budget runs out. On exhaustion the last, non-terminal,
    prediction is returned unchanged.
    """
    result = prediction
    attempts = 0
    headers = {"Authorization": f"Bearer {api_token}"}

    while not result.is_terminal and attempts < policy.max_attempts:
        await sleep(policy.interval)

        url = result.poll_url or prediction.poll_url or fallback_poll_url(prediction.id)
        r = await client.get(url, headers=headers)
        attempts += 1

        if not r.is_success:
            logger.error("[Replicate] Poll %s returned %s", url, r.status_code)
            raise ProviderError(
                "Failed to poll prediction",
                f"Replicate returned {r.status_code}: {r.text}",
                status_code=500,
            )

        result = parse_prediction(r)
        logger.debug("[Replicate] Prediction %s: %s (attempt %d)", result.id, result.status, attempts)

    if not result.is_terminal:
        logger.warning(
            "[Replicate] Prediction %s still %s after %d polls", result.id, result.status, attempts
        )
    return result


def resolve_output(output: Any) -> Optional[str]:
    """
    Replicate returns either one URL or a list of them; the first one wins.
    """
    if isinstance(output, (list, tuple)):
        return output[0] if output else None
    return output
