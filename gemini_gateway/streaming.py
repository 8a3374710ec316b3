"""Utilities to transform Gemini SSE payloads into OpenAI-compatible streaming chunks."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import AsyncGenerator, AsyncIterable, Dict, Any, List, Optional

from pydantic import ValidationError

from .errors import StreamMalformedError
from .gemini_models import Candidate, Content, GenerateContentResponse, Part
from .response_translator import candidate_text, map_finish_reason, transform_usage

logger = logging.getLogger(__name__)


@dataclass
class StreamTrackerState:
    """Per-request stream state. Never shared between requests."""
    id: str
    model: str
    include_usage: bool = False
    # choice index -> last upstream payload carrying that choice
    last_seen: Dict[int, GenerateContentResponse] = field(default_factory=dict)


def _chunk_payload(
    chunk_id: str,
    model: str,
    created: int,
    index: int = 0,
    delta_content: Optional[str] = None,
    delta_role: Optional[str] = None,
    finish_reason: Optional[str] = None,
) -> Dict[str, Any]:
    delta: Dict[str, Any] = {}
    if delta_role is not None:
        delta["role"] = delta_role
    if delta_content is not None:
        delta["content"] = delta_content

    return {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": model,
        "choices": [
            {
                "index": index,
                "delta": delta,
                "logprobs": None,
                "finish_reason": finish_reason,
            }
        ],
    }


def _sse_encode(obj: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(obj, ensure_ascii=False)}\n\n".encode("utf-8")


def _sse_done() -> bytes:
    return b"data: [DONE]\n\n"


def _find_candidate(data: GenerateContentResponse, index: int) -> Candidate:
    for cand in data.candidates:
        if (cand.index or 0) == index:
            return cand
    return data.candidates[0]


class StreamReEncoder:
    """
    Turns Gemini streamGenerateContent payloads into chat.completion.chunk frames.

    Each choice gets a role-announcing delta the first time it appears, then
    one content delta per payload that carries content. Gemini puts the
    finish reason on the last payload rather than on a separate event, so the
    closing delta for every choice is only emitted from flush().
    """

    def __init__(self, state: StreamTrackerState):
        self.state = state

    def _parse(self, payload: str) -> GenerateContentResponse:
        try:
            data = GenerateContentResponse.model_validate_json(payload)
        except ValidationError as e:
            raise StreamMalformedError(str(e))
        if not data.candidates:
            raise StreamMalformedError("Upstream payload has no candidates")
        return data

    def _degraded(self, err: StreamMalformedError) -> GenerateContentResponse:
        count = len(self.state.last_seen) or 1
        return GenerateContentResponse(
            candidates=[
                Candidate(
                    index=i,
                    finishReason="error",
                    content=Content(parts=[Part(text=str(err))]),
                )
                for i in range(count)
            ]
        )

    def _encode(
        self,
        data: GenerateContentResponse,
        index: int,
        delta_content: Optional[str] = None,
        delta_role: Optional[str] = None,
        finish_reason: Optional[str] = None,
        final: bool = False,
    ) -> bytes:
        chunk = _chunk_payload(
            chunk_id=self.state.id,
            model=self.state.model,
            created=int(time.time()),
            index=index,
            delta_content=delta_content,
            delta_role=delta_role,
            finish_reason=finish_reason,
        )
        if self.state.include_usage and data.usageMetadata is not None:
            # Usage totals travel on the closing chunk only
            usage = transform_usage(data.usageMetadata)
            chunk["usage"] = usage.model_dump() if final and usage is not None else None
        return _sse_encode(chunk)

    def feed(self, payload: str) -> List[bytes]:
        if not payload.strip():
            # Empty data event (keep-alive)
            return []
        try:
            data = self._parse(payload)
        except StreamMalformedError as e:
            logger.error("Malformed upstream payload %r: %s", payload[:500], e.message)
            data = self._degraded(e)

        if len(data.candidates) != 1:
            logger.warning("Unexpected candidates count: %d", len(data.candidates))

        frames: List[bytes] = []
        for cand in data.candidates:
            index = cand.index or 0
            if index not in self.state.last_seen:
                frames.append(self._encode(data, index, delta_content="", delta_role="assistant"))
            self.state.last_seen[index] = data
            if cand.content is not None:
                frames.append(self._encode(data, index, delta_content=candidate_text(cand)))
        return frames

    def flush(self) -> List[bytes]:
        if not self.state.last_seen:
            logger.warning("Upstream stream ended without any candidates (id=%s)", self.state.id)
            return []

        frames: List[bytes] = []
        for index in sorted(self.state.last_seen):
            data = self.state.last_seen[index]
            cand = _find_candidate(data, index)
            frames.append(
                self._encode(data, index, finish_reason=map_finish_reason(cand.finishReason), final=True)
            )
        frames.append(_sse_done())
        return frames


async def openai_stream_from_gemini(
    payloads: AsyncIterable[str],
    state: StreamTrackerState,
) -> AsyncGenerator[bytes, None]:
    """Bridge reassembled Gemini payloads into an OpenAI chat.completion.chunk stream."""
    encoder = StreamReEncoder(state)
    async for payload in payloads:
        for frame in encoder.feed(payload):
            yield frame
    for frame in encoder.flush():
        yield frame
