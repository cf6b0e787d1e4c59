"""
Client for the external text/image generation service.

The service is a black box with two stateless calls. Prompt construction and
model choice happen on its side; this module only shapes the request.
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from planner.core.config import settings
from planner.core.exceptions import ContentGenerationFailed
from planner.models.social_account import Platform

logger = logging.getLogger(__name__)


class GenerationRequest(BaseModel):
    type: str = "draft"  # draft | improve | shorten | expand | hashtags
    tone: Optional[str] = None
    platform: Optional[Platform] = None
    current_text: Optional[str] = None
    topic: Optional[str] = None


class ContentGenerator:
    def __init__(self, base_url: str, api_key: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.http = http_client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    def _post(self, path: str, payload: dict) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = self.http.post(f"{self.base_url}{path}", json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ContentGenerationFailed(f"Generation service error: {exc.response.text}") from exc
        except httpx.HTTPError as exc:
            raise ContentGenerationFailed(f"Generation service unreachable: {exc}") from exc
        return response.json()

    def generate_text(self, request: GenerationRequest) -> str:
        data = self._post("/generate/text", request.model_dump(mode="json", exclude_none=True))
        text = (data.get("text") or "").strip()
        if not text:
            raise ContentGenerationFailed("Generation service returned no text")
        return text

    def generate_image(self, prompt: str) -> str:
        if not prompt:
            raise ContentGenerationFailed("Missing prompt")
        data = self._post("/generate/image", {"prompt": prompt})
        image_ref = data.get("imageUrl") or data.get("image_url")
        if not image_ref:
            raise ContentGenerationFailed("Generation service returned no image")
        return image_ref


def get_content_generator() -> ContentGenerator:
    return ContentGenerator(settings.GENERATION_API_URL, settings.GENERATION_API_KEY)
