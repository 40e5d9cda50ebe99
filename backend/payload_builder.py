# backend/payload_builder.py

from typing import Dict, Any, List

from config.settings import settings

from .model import Mode


# Fixed output parameters for bytedance/seedream-4
IMAGE_PARAMS: Dict[str, Any] = {
    "size": "2K",
    "width": 2048,
    "height": 2048,
    "max_images": 1,
    "aspect_ratio": "1:1",
    "enhance_prompt": True,
    "sequential_image_generation": "disabled",
}

# Fixed motion parameters for the image-to-video model
VIDEO_PARAMS: Dict[str, Any] = {
    "num_frames": 81,
    "resolution": "480p",
    "frames_per_second": 16,
}


def build_image_input(reference_images: List[str], prompt: str) -> Dict[str, Any]:
    """
    Image mode: every reference image goes to the model, in upload order.
    """
    return {
        "image_input": list(reference_images),
        "prompt": prompt,
        **IMAGE_PARAMS,
    }


def build_video_input(reference_images: List[str], prompt: str) -> Dict[str, Any]:
    """
    Video mode: the model animates a single frame, so only the first
    reference image is sent. The rest are dropped.
    """
    return {
        "image": reference_images[0],
        "prompt": prompt,
        **VIDEO_PARAMS,
    }


def model_for_mode(mode: Mode) -> str:
    return settings.VIDEO_MODEL if mode == "video" else settings.IMAGE_MODEL


def build_prediction_body(mode: Mode, reference_images: List[str], prompt: str) -> Dict[str, Any]:
    if mode == "video":
        return {"input": build_video_input(reference_images, prompt)}
    return {"input": build_image_input(reference_images, prompt)}


def predictions_endpoint(mode: Mode) -> str:
    base = settings.REPLICATE_API_BASE.rstrip("/")
    return f"{base}/models/{model_for_mode(mode)}/predictions"
