# backend/app.py

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config.settings import settings
from .errors import RelayError
from .model import GenerateRequest, GenerateResponse
from .relay import generate as run_generation
from .replicate_client import Sleep

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One outbound client shared by every request
    app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
    yield
    await app.state.http_client.aclose()


class BodySizeLimitMiddleware:
    """
    Reject uploads over the limit. Content-Length is checked up front and the
    bytes actually received are counted, so chunked bodies are bounded too.
    """

    def __init__(self, app: ASGIApp, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    def _too_large(self) -> str:
        return f"Request body exceeds {self.max_bytes // (1024 * 1024)}mb"

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length and length.isdigit() and int(length) > self.max_bytes:
            logger.warning("[API] Rejected %s byte body on %s", length, scope["path"])
            response = JSONResponse(status_code=413, content={"error": self._too_large()})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    logger.warning("[API] Streamed body over %s bytes on %s", self.max_bytes, scope["path"])
                    # Re-raised as-is by FastAPI body parsing, rendered by the HTTP handler
                    raise HTTPException(status_code=413, detail=self._too_large())
            return message

        await self.app(scope, limited_receive, send)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_sleep() -> Sleep:
    return asyncio.sleep


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(httpx.HTTPError)
async def transport_error_handler(request: Request, exc: httpx.HTTPError):
    logger.error("[API] Generation error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to generate", "details": str(exc)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("[API] Unexpected error: %s: %s", type(exc).__name__, exc)
    logger.error("[API] Traceback: %s", traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to generate", "details": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    error = "Method not allowed" if exc.status_code == 405 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": error}, headers=exc.headers)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/api/generate", response_model=GenerateResponse)
async def generate(
    req: GenerateRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
    sleep: Sleep = Depends(get_sleep),
):
    result = await run_generation(client, req, sleep=sleep)
    return GenerateResponse(output=result.output_url, type=result.type, model=result.model)
