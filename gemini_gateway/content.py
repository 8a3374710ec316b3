"""Encoding of OpenAI message content parts into Gemini parts."""

import re
from typing import Awaitable, Callable, Tuple

from .errors import MalformedDataURI, UnsupportedContentType
from .gemini_models import InlineData, Part
from .openai_models import ContentPart

# (url) -> (mime_type, base64_data)
ImageFetcher = Callable[[str], Awaitable[Tuple[str, str]]]

DATA_URI_RE = re.compile(r"^data:(?P<mime_type>.*?)(;base64)?,(?P<data>.+)$")


def parse_data_uri(url: str) -> InlineData:
    match = DATA_URI_RE.match(url)
    if not match:
        raise MalformedDataURI("Invalid image data: " + url[:100])
    return InlineData(mimeType=match.group("mime_type"), data=match.group("data"))


async def encode_image(url: str, fetch_image: ImageFetcher) -> Part:
    if url.startswith("http://") or url.startswith("https://"):
        mime_type, data = await fetch_image(url)
        return Part(inlineData=InlineData(mimeType=mime_type, data=data))
    return Part(inlineData=parse_data_uri(url))


async def encode_part(part: ContentPart, fetch_image: ImageFetcher) -> Part:
    """Convert one content part. Raises ClientInputError subclasses on bad input."""
    if part.type == "text":
        return Part(text=part.text or "")
    if part.type == "image_url":
        if part.image_url is None:
            raise MalformedDataURI("image_url part without url")
        return await encode_image(part.image_url.url, fetch_image)
    if part.type == "input_audio":
        if part.input_audio is None:
            raise UnsupportedContentType("input_audio part without data")
        return Part(
            inlineData=InlineData(
                mimeType="audio/" + part.input_audio.format,
                data=part.input_audio.data,
            )
        )
    raise UnsupportedContentType(f'Unknown "content" item type: {part.type}')
