"""Image generation client using the OpenAI Images API."""

import logging
import os
from typing import Optional

import httpx

from .errors import GenerationError
from .media import ImageBlob

logger = logging.getLogger(__name__)


class OpenAIImageClient:
    """Generates one scene image per call, optionally from a reference photo."""

    GENERATIONS_URL = "https://api.openai.com/v1/images/generations"
    EDITS_URL = "https://api.openai.com/v1/images/edits"

    DEFAULT_MODEL = "gpt-image-1.5"
    IMAGE_SIZE = "1024x1024"
    IMAGE_QUALITY = "medium"

    # The API has no server-side deadline we can rely on
    REQUEST_TIMEOUT = float(os.getenv("IMAGE_REQUEST_TIMEOUT", "180"))

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not found in environment")
        self.model = model or os.getenv("IMAGE_MODEL", self.DEFAULT_MODEL)
        self.timeout = timeout or self.REQUEST_TIMEOUT
        self._transport = transport

    async def generate(self, prompt: str, reference_image: Optional[ImageBlob] = None) -> ImageBlob:
        """Generate an image for *prompt*.

        With a *reference_image* the edits endpoint is used so the scene keeps
        the likeness of the people in the photo.

        Raises:
            GenerationError: On any non-success response, malformed payload
                or connection failure.
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                if reference_image is not None:
                    logger.debug("Requesting image edit with reference photo")
                    response = await client.post(
                        self.EDITS_URL,
                        headers=headers,
                        data={
                            "prompt": prompt,
                            "model": self.model,
                            "n": "1",
                            "size": self.IMAGE_SIZE,
                        },
                        files={
                            "image": ("reference.png", reference_image.data, reference_image.mime_type),
                        },
                    )
                else:
                    logger.debug("Requesting image generation")
                    response = await client.post(
                        self.GENERATIONS_URL,
                        headers={**headers, "Content-Type": "application/json"},
                        json={
                            "model": self.model,
                            "prompt": prompt,
                            "n": 1,
                            "size": self.IMAGE_SIZE,
                            "quality": self.IMAGE_QUALITY,
                        },
                    )

                if response.is_error:
                    raise GenerationError(_error_message(response), response.status_code)

                return await self._extract_image(client, response.json())

        except GenerationError:
            raise
        except httpx.TimeoutException as e:
            raise GenerationError("Image generation timed out. Please try again.") from e
        except httpx.TransportError as e:
            raise GenerationError(
                "Failed to connect. Please check your internet connection and try again."
            ) from e
        except ValueError as e:
            raise GenerationError("Invalid response format from API") from e

    async def _extract_image(self, client: httpx.AsyncClient, payload: dict) -> ImageBlob:
        """Normalize inline base64 and hosted-URL responses to bytes."""
        items = payload.get("data") if isinstance(payload, dict) else None
        if not items:
            raise GenerationError("Invalid response format from API")
        first = items[0] or {}

        if first.get("b64_json"):
            return ImageBlob.from_base64(first["b64_json"])

        if first.get("url"):
            image_response = await client.get(first["url"])
            if image_response.is_error:
                raise GenerationError(
                    f"Failed to download generated image: {image_response.status_code}",
                    image_response.status_code,
                )
            mime_type = image_response.headers.get("content-type", "image/png").split(";")[0]
            return ImageBlob(image_response.content, mime_type)

        raise GenerationError("Invalid response format from API")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return f"API error: {response.status_code} {response.reason_phrase}"
