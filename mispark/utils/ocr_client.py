import asyncio
import logging

import requests

from mispark.config import OCR_API_KEY, OCR_API_URL, OCR_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class OcrError(Exception):
    pass


class OcrSpaceClient:
    """Thin client for an OCR.Space style `parse/image` endpoint."""

    def __init__(self, url: str = OCR_API_URL, api_key: str = OCR_API_KEY, timeout: float = OCR_TIMEOUT_SECONDS):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def _post(self, image: bytes, filename: str, content_type: str) -> str:
        try:
            resp = requests.post(
                self.url,
                headers={"apikey": self.api_key},
                data={"language": "eng", "isTable": "false"},
                files={"file": (filename, image, content_type)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OcrError(f"OCR request failed: {e}") from e

        if resp.status_code != 200:
            raise OcrError(f"OCR service answered {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise OcrError("OCR response is not JSON") from e

        if not isinstance(body, dict):
            raise OcrError("OCR response has an unexpected shape")

        results = body.get("ParsedResults") or []
        if not results or not isinstance(results[0], dict):
            raise OcrError(f"OCR response without results: {body.get('ErrorMessage')}")

        return results[0].get("ParsedText") or ""

    async def read_text(self, image: bytes, filename: str = "photo.jpg", content_type: str = "image/jpeg") -> str:
        text = await asyncio.to_thread(self._post, image, filename, content_type)
        logger.debug("OCR text: %r", text)
        return text
