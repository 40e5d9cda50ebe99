import os
import base64
import datetime
from typing import List, Optional, Tuple
from io import BytesIO

import requests
import streamlit as st
from PIL import Image

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")
MAX_IMAGES = 4

# Video jobs can take several minutes on Replicate
REQUEST_TIMEOUT = {"image": 240, "video": 420}


def to_data_url(raw: bytes, mime: str) -> str:
    """Encode an uploaded file the way a browser FileReader would."""
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def call_generate(reference_images: List[str], prompt: str, mode: str) -> Tuple[Optional[dict], Optional[str]]:
    """POST /api/generate -> (result, error message)"""
    payload = {"referenceImages": reference_images, "prompt": prompt, "mode": mode}
    resp = requests.post(f"{BACKEND_URL}/api/generate", json=payload, timeout=REQUEST_TIMEOUT[mode])
    try:
        data = resp.json()
    except ValueError:
        return None, f"HTTP {resp.status_code}"
    if not resp.ok:
        message = data.get("error", "Failed")
        if data.get("details"):
            message = f"{message}: {data['details']}"
        return None, message
    return data, None


def download_output(url: str) -> Optional[bytes]:
    try:
        resp = requests.get(url, timeout=60)
        resp.raise_for_status()
        return resp.content
    except requests.RequestException as e:
        st.warning(f"Could not download result: {e}")
        return None


# ==========================
# Config
# ==========================
st.set_page_config(page_title="MASH", page_icon="📸", layout="centered")

st.title("MASH")
st.caption("AI Photoshoot Extender")

if "result" not in st.session_state:
    st.session_state["result"] = None

# ==========================
# Mode + reference photos
# ==========================
mode_option = st.radio("Mode", ["Image", "Video"], horizontal=True)
mode = mode_option.lower()

uploads = st.file_uploader(
    "Reference Photos",
    type=["png", "jpg", "jpeg", "webp"],
    accept_multiple_files=True,
    help=f"Up to {MAX_IMAGES} photos. Video mode animates the first one.",
)
# Keep the most recent uploads, like the drop zone does
uploads = (uploads or [])[-MAX_IMAGES:]

if uploads:
    st.markdown(f"**{len(uploads)}/{MAX_IMAGES}**")
    cols = st.columns(MAX_IMAGES)
    for col, f in zip(cols, uploads):
        with col:
            st.image(Image.open(BytesIO(f.getvalue())), use_container_width=True)

prompt = st.text_area(
    "Prompt",
    placeholder="Same model, golden hour on a rooftop, soft film grain...",
)

can_generate = bool(uploads) and bool(prompt.strip())

if st.button("Generate", disabled=not can_generate, use_container_width=True):
    images = [to_data_url(f.getvalue(), f.type or "image/png") for f in uploads]
    with st.spinner("Generating... this can take a few minutes"):
        try:
            data, error = call_generate(images, prompt.strip(), mode)
        except requests.RequestException as e:
            data, error = None, str(e)

    if error:
        st.session_state["result"] = None
        st.error(error)
    else:
        st.session_state["result"] = data

# ==========================
# Result
# ==========================
result = st.session_state["result"]
if result:
    output_url = result["output"]
    if result.get("type") == "video":
        st.video(output_url)
        ext, mime = "mp4", "video/mp4"
    else:
        st.image(output_url, use_container_width=True)
        ext, mime = "png", "image/png"

    content = download_output(output_url)
    if content:
        ts = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        st.download_button("Download", data=content, file_name=f"mash-{ts}.{ext}", mime=mime)
    st.markdown(f"[Open original]({output_url})")
