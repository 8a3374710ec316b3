"""Pydantic models for the Gemini generative-content API."""

from typing import Optional, Any, Dict, List
from pydantic import BaseModel, Field


class InlineData(BaseModel):
    """Inline binary payload, base64-encoded."""
    mimeType: Optional[str] = None
    data: str


class Part(BaseModel):
    """One content part: text or inline data. Other part kinds are kept as extras."""
    text: Optional[str] = None
    inlineData: Optional[InlineData] = None
    model_config = {"extra": "allow"}


class Content(BaseModel):
    """A role-tagged content turn. The system instruction carries no role."""
    role: Optional[str] = None
    parts: List[Part] = Field(default_factory=list)


class SafetySetting(BaseModel):
    category: str
    threshold: str


HARM_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_CIVIC_INTEGRITY",
)

SAFETY_SETTINGS = [SafetySetting(category=c, threshold="BLOCK_NONE") for c in HARM_CATEGORIES]


class GenerateContentRequest(BaseModel):
    """Body of models/<model>:generateContent and :streamGenerateContent."""
    system_instruction: Optional[Content] = None
    contents: List[Content] = Field(default_factory=list)
    safetySettings: List[SafetySetting] = Field(default_factory=lambda: list(SAFETY_SETTINGS))
    generationConfig: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload = self.model_dump(exclude_none=True, exclude={"generationConfig"})
        # generationConfig is user-controlled JSON (response schemas may carry nulls)
        payload["generationConfig"] = dict(self.generationConfig)
        return payload


class Candidate(BaseModel):
    index: Optional[int] = None
    content: Optional[Content] = None
    finishReason: Optional[str] = None
    model_config = {"extra": "allow"}


class UsageMetadata(BaseModel):
    promptTokenCount: Optional[int] = None
    candidatesTokenCount: Optional[int] = None
    totalTokenCount: Optional[int] = None
    model_config = {"extra": "allow"}


class GenerateContentResponse(BaseModel):
    candidates: List[Candidate] = Field(default_factory=list)
    usageMetadata: Optional[UsageMetadata] = None
    modelVersion: Optional[str] = None
    model_config = {"extra": "allow"}
