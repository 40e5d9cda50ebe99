# backend/model.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal, List, Any

Mode = Literal["image", "video"]

Status = Literal["starting", "processing", "succeeded", "failed", "canceled"]

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reference_images: List[str] = Field(default_factory=list, alias="referenceImages")
    prompt: str = ""
    mode: Mode = "image"


class PredictionUrls(BaseModel):
    model_config = ConfigDict(extra="allow")

    get: Optional[str] = None
    cancel: Optional[str] = None


class Prediction(BaseModel):
    """
    A job as tracked by Replicate. Replaced wholesale by every poll response.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    status: str = "starting"
    urls: Optional[PredictionUrls] = None
    output: Any = None
    error: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def poll_url(self) -> Optional[str]:
        return self.urls.get if self.urls else None


class GenerationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_url: str
    type: Mode
    model: str


class GenerateResponse(BaseModel):
    success: bool = True
    output: str
    type: Mode
    model: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
    retryAfter: Optional[int] = None
