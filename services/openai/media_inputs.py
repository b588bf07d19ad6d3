"""Utilities to build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List

from models.scene_models import AnalysisRequest
from services.realtime.prompts import VISION_SYSTEM_PROMPT, history_block, scene_context_block


def to_image_data_url(image_bytes: bytes) -> str:
    """Convert base64 image bytes into a data URL suitable for vision input."""
    try:
        b64_str = image_bytes.decode("utf-8")
    except Exception as exc:
        raise ValueError("Image bytes must be base64-encoded UTF-8.") from exc
    if not b64_str:
        raise ValueError("Image bytes are empty.")
    return f"data:image/jpeg;base64,{b64_str}"


def _text_message(role: str, text: str) -> Dict[str, Any]:
    return {"type": "message", "role": role, "content": [{"type": "input_text", "text": text}]}


def build_inputs(request: AnalysisRequest) -> List[Dict[str, Any]]:
    """Build the Responses API input array for a frame description or a question.

    Frame requests carry an image and no scene context; questions carry the
    scene memory and recent history instead.
    """
    system_prompt = request.instructions or VISION_SYSTEM_PROMPT
    inputs: List[Dict[str, Any]] = [_text_message("system", system_prompt)]

    if request.image_b64 is None:
        inputs.append(_text_message("user", scene_context_block(request.scene_context)))
        recent = history_block(request.history)
        if recent:
            inputs.append(_text_message("user", recent))

    inputs.append(_text_message("user", request.prompt))
    if request.image_b64 is not None:
        inputs.append(
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_image", "image_url": to_image_data_url(request.image_b64)}],
            }
        )
    return inputs
