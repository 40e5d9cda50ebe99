import json
from typing import Any, List

import httpx
import pytest
import pytest_asyncio

from config.settings import settings

TEST_TOKEN = "r8_test_token"


class FakeReplicate:
    """
    Scripted stand-in for the Replicate API, served through httpx.MockTransport.
    POST and GET responses are consumed in order; every request is recorded.
    """

    def __init__(self):
        self.post_responses: List[httpx.Response] = []
        self.get_responses: List[httpx.Response] = []
        self.requests: List[httpx.Request] = []

    def on_post(self, status_code: int = 201, **kwargs: Any) -> "FakeReplicate":
        self.post_responses.append(httpx.Response(status_code, **kwargs))
        return self

    def on_get(self, status_code: int = 200, **kwargs: Any) -> "FakeReplicate":
        self.get_responses.append(httpx.Response(status_code, **kwargs))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.post_responses if request.method == "POST" else self.get_responses
        if not queue:
            raise AssertionError(f"Unexpected {request.method} {request.url}")
        return queue.pop(0)

    @property
    def posts(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def gets(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def post_body(self, index: int = 0) -> dict:
        return json.loads(self.posts[index].content)


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def prediction(status: str, pid: str = "p1", **extra: Any) -> dict:
    data = {
        "id": pid,
        "status": status,
        "urls": {"get": f"https://api.replicate.com/v1/predictions/{pid}"},
        "output": None,
        "error": None,
    }
    data.update(extra)
    return data


@pytest.fixture(autouse=True)
def api_token(monkeypatch):
    """Every test runs with a known token unless it removes it."""
    monkeypatch.setenv("REPLICATE_API_TOKEN", TEST_TOKEN)
    yield TEST_TOKEN


@pytest.fixture(autouse=True)
def replicate_settings(monkeypatch):
    monkeypatch.setattr(settings, "REPLICATE_API_BASE", "https://api.replicate.com/v1")
    monkeypatch.setattr(settings, "IMAGE_MODEL", "bytedance/seedream-4")
    monkeypatch.setattr(settings, "VIDEO_MODEL", "wan-video/wan-2.2-i2v-fast")
    monkeypatch.setattr(settings, "DEFAULT_RETRY_AFTER", 3)


@pytest.fixture
def fake_replicate():
    return FakeReplicate()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest_asyncio.fixture
async def http_client(fake_replicate):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_replicate.handler)) as client:
        yield client
