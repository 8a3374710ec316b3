"""Async HTTP client for the Gemini generative-content API."""

import asyncio
import base64
import json
import logging
from typing import Optional, AsyncGenerator, Dict, Any, Tuple

import httpx

from .config import get_settings, Settings
from .errors import FetchError, UpstreamProtocolError, UpstreamTransportError
from .gemini_models import GenerateContentRequest

logger = logging.getLogger(__name__)


class GeminiApiClient:
    """Client for generateContent/streamGenerateContent and the auxiliary endpoints."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings: Settings = settings or get_settings()
        self.api_root = self.settings.api_root

        # Use infinite read timeout for SSE, while keeping bounded connect/write/pool timeouts
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=self.settings.GEMINI_TIMEOUT,
                read=None,
                write=self.settings.GEMINI_TIMEOUT,
                pool=self.settings.GEMINI_TIMEOUT,
            ),
            headers={
                "x-goog-api-client": self.settings.GEMINI_API_CLIENT,
            },
        )

    @staticmethod
    def _headers(api_key: Optional[str], json_body: bool = True) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if api_key:
            headers["x-goog-api-key"] = api_key
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _log_request(self, url: str, payload: Any) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            preview = json.dumps(payload, ensure_ascii=False)
            max_len = self.settings.LOG_REQUEST_BODY_MAX_LENGTH
            if len(preview) > max_len:
                preview = preview[:max_len] + "...(truncated)"
            logger.debug("Sending request to upstream %s - payload=%s", url, preview)
        else:
            logger.info("Sending request to upstream %s", url)

    @staticmethod
    async def _raise_for_status(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        body = await resp.aread()
        logger.debug("Upstream error body: %s", body[:2000])
        raise UpstreamProtocolError(resp.status_code, body, resp.headers.get("content-type"))

    async def _post_json(self, url: str, payload: Dict[str, Any], api_key: Optional[str]) -> Dict[str, Any]:
        self._log_request(url, payload)
        try:
            resp = await self.client.post(url, json=payload, headers=self._headers(api_key))
        except httpx.RequestError as e:
            raise UpstreamTransportError(f"Network error calling upstream: {str(e)}")
        await self._raise_for_status(resp)
        return resp.json()

    async def generate_content(
        self, model: str, request: GenerateContentRequest, api_key: Optional[str]
    ) -> Dict[str, Any]:
        """Unary call. Returns the decoded upstream JSON."""
        url = f"{self.api_root}/models/{model}:generateContent"
        return await self._post_json(url, request.to_payload(), api_key)

    async def stream_generate_content(
        self, model: str, request: GenerateContentRequest, api_key: Optional[str]
    ) -> httpx.Response:
        """
        Open an SSE stream. The returned response has a 2xx status and an
        unread body; the caller must close it (see iter_text).
        """
        url = f"{self.api_root}/models/{model}:streamGenerateContent?alt=sse"
        payload = request.to_payload()
        self._log_request(url, payload)
        upstream_request = self.client.build_request(
            "POST", url, json=payload, headers=self._headers(api_key)
        )
        try:
            resp = await self.client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            raise UpstreamTransportError(f"Network error opening upstream stream: {str(e)}")

        if not resp.is_success:
            try:
                await self._raise_for_status(resp)
            finally:
                await resp.aclose()
        return resp

    @staticmethod
    async def iter_text(resp: httpx.Response) -> AsyncGenerator[str, None]:
        """Yield decoded text fragments of a streamed response, closing it at the end."""
        try:
            async for fragment in resp.aiter_text():
                yield fragment
        except (GeneratorExit, asyncio.CancelledError):
            logger.debug("Stream cancelled or client disconnected")
            raise
        except httpx.RequestError as e:
            raise UpstreamTransportError(f"Network error reading upstream stream: {str(e)}")
        finally:
            await resp.aclose()

    async def list_models(self, api_key: Optional[str]) -> Dict[str, Any]:
        url = f"{self.api_root}/models"
        logger.info("Listing upstream models")
        try:
            resp = await self.client.get(url, headers=self._headers(api_key, json_body=False))
        except httpx.RequestError as e:
            raise UpstreamTransportError(f"Network error listing models: {str(e)}")
        await self._raise_for_status(resp)
        return resp.json()

    async def batch_embed_contents(
        self, model: str, payload: Dict[str, Any], api_key: Optional[str]
    ) -> Dict[str, Any]:
        """model is the full resource name, e.g. models/text-embedding-004."""
        url = f"{self.api_root}/{model}:batchEmbedContents"
        return await self._post_json(url, payload, api_key)

    async def fetch_image(self, url: str) -> Tuple[str, str]:
        """Download a remote image. Returns (mime_type, base64_data)."""
        logger.debug("Fetching image %s", url)
        try:
            request = self.client.build_request("GET", url, timeout=self.settings.IMAGE_FETCH_TIMEOUT)
            # Image hosts are third parties; keep Gemini client headers to Gemini
            request.headers.pop("x-goog-api-client", None)
            resp = await self.client.send(request)
        except httpx.RequestError as e:
            raise FetchError(f"Error fetching image: {str(e)}")
        if not resp.is_success:
            raise FetchError(f"Error fetching image: {resp.status_code} {resp.reason_phrase} ({url})")

        mime_type = resp.headers.get("content-type")
        data = base64.b64encode(resp.content).decode("ascii")
        return mime_type, data

    async def close(self):
        """Close underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
