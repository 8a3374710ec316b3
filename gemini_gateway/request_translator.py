"""Translation of OpenAI chat-completion requests into Gemini request bodies."""

import logging
from typing import Any, Dict, List, Optional, Tuple

from .config import get_settings
from .content import ImageFetcher, encode_part
from .errors import UnsupportedResponseFormat
from .gemini_models import Content, GenerateContentRequest, Part
from .openai_models import ChatCompletionsRequest, ChatMessage, ResponseFormat

logger = logging.getLogger(__name__)

# OpenAI field -> generationConfig field
FIELDS_MAP: Dict[str, str] = {
    "stop": "stopSequences",
    "n": "candidateCount",
    "max_tokens": "maxOutputTokens",
    "max_completion_tokens": "maxOutputTokens",
    "temperature": "temperature",
    "top_p": "topP",
    "top_k": "topK",
    "frequency_penalty": "frequencyPenalty",
    "presence_penalty": "presencePenalty",
}


def resolve_model(model: Optional[str]) -> str:
    """Map an inbound model name onto a Gemini model id."""
    if not isinstance(model, str):
        return get_settings().DEFAULT_MODEL
    if model.startswith("models/"):
        return model[len("models/"):]
    if model.startswith("gemini-") or model.startswith("learnlm-"):
        return model
    return get_settings().DEFAULT_MODEL


async def transform_message(message: ChatMessage, fetch_image: ImageFetcher) -> List[Part]:
    if not isinstance(message.content, list):
        return [Part(text=message.content if message.content is not None else "")]

    parts = [await encode_part(item, fetch_image) for item in message.content]
    # Gemini wants at least one text part per turn
    if message.content and all(item.type == "image_url" for item in message.content):
        parts.append(Part(text=""))
    return parts


async def transform_messages(
    messages: List[ChatMessage], fetch_image: ImageFetcher
) -> Tuple[Optional[Content], List[Content]]:
    """Returns (system_instruction, contents)."""
    contents: List[Content] = []
    system_instruction: Optional[Content] = None
    for message in messages:
        parts = await transform_message(message, fetch_image)
        if message.role == "system":
            if system_instruction is not None:
                logger.debug("Multiple system messages; keeping the last one")
            system_instruction = Content(parts=parts)
        else:
            role = "model" if message.role == "assistant" else "user"
            contents.append(Content(role=role, parts=parts))

    if system_instruction is not None and not contents:
        contents.append(Content(role="model", parts=[Part(text=" ")]))
    return system_instruction, contents


def transform_response_format(response_format: ResponseFormat, config: Dict[str, Any]) -> None:
    fmt = response_format.type
    if fmt == "json_schema":
        json_schema = response_format.json_schema
        schema = json_schema.schema_ if json_schema is not None else None
        if schema is not None:
            config["responseSchema"] = schema
        if schema is not None and "enum" in schema:
            config["responseMimeType"] = "text/x.enum"
        else:
            config["responseMimeType"] = "application/json"
    elif fmt == "json_object":
        config["responseMimeType"] = "application/json"
    elif fmt == "text":
        config["responseMimeType"] = "text/plain"
    else:
        raise UnsupportedResponseFormat(f"Unsupported response_format.type: {fmt}")


def transform_config(body: ChatCompletionsRequest) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for field, target in FIELDS_MAP.items():
        value = getattr(body, field)
        if value is None:
            continue
        if field == "stop" and isinstance(value, str):
            value = [value]
        config[target] = value
    if body.response_format is not None:
        transform_response_format(body.response_format, config)
    return config


async def transform_request(body: ChatCompletionsRequest, fetch_image: ImageFetcher) -> GenerateContentRequest:
    # Parameters first: a bad response_format must fail before any image is fetched
    generation_config = transform_config(body)
    system_instruction, contents = await transform_messages(body.messages, fetch_image)
    return GenerateContentRequest(
        system_instruction=system_instruction,
        contents=contents,
        generationConfig=generation_config,
    )
