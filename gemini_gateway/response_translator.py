"""Translation of Gemini responses into OpenAI-compatible objects."""

import random
import string
import time
from typing import Any, Dict, List, Optional

from .gemini_models import Candidate, GenerateContentResponse, UsageMetadata
from .openai_models import (
    ChatChoice,
    ChatCompletion,
    ChatMessageResponse,
    EmbeddingData,
    EmbeddingList,
    ModelData,
    ModelList,
    Usage,
)

REASONS_MAP: Dict[str, str] = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}

# Joins multiple text parts of one candidate
SEP = "\n\n|>"

_ID_ALPHABET = string.ascii_letters + string.digits


def generate_completion_id() -> str:
    return "chatcmpl-" + "".join(random.choices(_ID_ALPHABET, k=29))


def map_finish_reason(reason: Optional[str]) -> Optional[str]:
    """Unknown reasons pass through unchanged."""
    if reason is None:
        return None
    return REASONS_MAP.get(reason, reason)


def candidate_text(candidate: Candidate) -> Optional[str]:
    if candidate.content is None:
        return None
    return SEP.join(p.text for p in candidate.content.parts if p.text is not None)


def transform_usage(usage: Optional[UsageMetadata]) -> Optional[Usage]:
    if usage is None:
        return None
    return Usage(
        completion_tokens=usage.candidatesTokenCount,
        prompt_tokens=usage.promptTokenCount,
        total_tokens=usage.totalTokenCount,
    )


def transform_candidate(candidate: Candidate) -> ChatChoice:
    return ChatChoice(
        index=candidate.index or 0,
        message=ChatMessageResponse(content=candidate_text(candidate)),
        finish_reason=map_finish_reason(candidate.finishReason),
    )


def process_completions_response(data: GenerateContentResponse, model: str, completion_id: str) -> ChatCompletion:
    return ChatCompletion(
        id=completion_id,
        created=int(time.time()),
        model=model,
        choices=[transform_candidate(c) for c in data.candidates],
        usage=transform_usage(data.usageMetadata),
    )


def transform_models(data: Dict[str, Any]) -> ModelList:
    return ModelList(
        data=[ModelData(id=m["name"].replace("models/", "", 1)) for m in data.get("models", [])],
    )


def transform_embeddings(data: Dict[str, Any], model: str) -> EmbeddingList:
    embeddings: List[Dict[str, Any]] = data.get("embeddings", [])
    return EmbeddingList(
        data=[EmbeddingData(index=i, embedding=e["values"]) for i, e in enumerate(embeddings)],
        model=model,
    )
