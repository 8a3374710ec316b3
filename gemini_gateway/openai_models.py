# OpenAI-compatible schema models for chat completions API

from typing import List, Optional, Literal, Dict, Any, Union
from pydantic import BaseModel, Field


class ImageUrl(BaseModel):
    url: str
    detail: Optional[str] = None


class InputAudio(BaseModel):
    data: str
    format: str


class ContentPart(BaseModel):
    # Tagged by 'type'; unknown tags are rejected when the part is encoded
    type: str
    text: Optional[str] = None
    image_url: Optional[ImageUrl] = None
    input_audio: Optional[InputAudio] = None
    model_config = {"extra": "allow"}


class ChatMessage(BaseModel):
    # system and assistant are special; any other role is sent as user
    role: str
    # Accept both string and array-of-parts per OpenAI SDKs
    content: Union[str, List[ContentPart], None] = None


class JsonSchemaSpec(BaseModel):
    name: Optional[str] = None
    strict: Optional[bool] = None
    # 'schema' shadows a BaseModel attribute
    schema_: Optional[Dict[str, Any]] = Field(None, alias="schema")
    model_config = {"extra": "allow", "populate_by_name": True}


class ResponseFormat(BaseModel):
    type: str
    json_schema: Optional[JsonSchemaSpec] = None


class StreamOptions(BaseModel):
    include_usage: Optional[bool] = None


class ChatCompletionsRequest(BaseModel):
    model: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: Optional[bool] = False
    stream_options: Optional[StreamOptions] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    stop: Optional[Union[str, List[str]]] = None
    n: Optional[int] = None
    response_format: Optional[ResponseFormat] = None
    user: Optional[str] = None
    # Fields the upstream has no equivalent for are dropped
    model_config = {"extra": "ignore"}

    @property
    def include_usage(self) -> bool:
        return bool(self.stream_options and self.stream_options.include_usage)


class ChatMessageResponse(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessageResponse
    logprobs: None = None
    finish_reason: Optional[str] = None


class Usage(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class ChatCompletion(BaseModel):
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: List[ChatChoice]
    usage: Optional[Usage] = None


class EmbeddingsRequest(BaseModel):
    model: Any = None
    input: Union[str, List[str]]
    dimensions: Optional[int] = None


class EmbeddingData(BaseModel):
    object: Literal["embedding"] = "embedding"
    index: int
    embedding: List[float]


class EmbeddingList(BaseModel):
    object: Literal["list"] = "list"
    data: List[EmbeddingData]
    model: str


class ModelData(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str = ""


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: List[ModelData]
