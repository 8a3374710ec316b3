"""Tests for request translation: content parts, messages, generation config"""
import pytest

from gemini_gateway.content import encode_part, parse_data_uri
from gemini_gateway.errors import (
    ClientInputError,
    MalformedDataURI,
    UnsupportedContentType,
    UnsupportedResponseFormat,
)
from gemini_gateway.openai_models import ChatCompletionsRequest, ChatMessage, ContentPart
from gemini_gateway.request_translator import (
    resolve_model,
    transform_config,
    transform_messages,
    transform_request,
)


def _request(**kwargs) -> ChatCompletionsRequest:
    kwargs.setdefault("model", "gpt-4")
    kwargs.setdefault("messages", [{"role": "user", "content": "hi"}])
    return ChatCompletionsRequest.model_validate(kwargs)


@pytest.mark.unit
class TestContentEncoder:
    """Test encoding of single content parts"""

    @pytest.mark.asyncio
    async def test_text_part_verbatim(self, no_fetch):
        part = await encode_part(ContentPart(type="text", text="  spaced  "), no_fetch)
        assert part.model_dump(exclude_none=True) == {"text": "  spaced  "}

    @pytest.mark.asyncio
    async def test_data_uri_image(self, no_fetch):
        item = ContentPart.model_validate(
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw0KGgo="}}
        )
        part = await encode_part(item, no_fetch)
        assert part.model_dump(exclude_none=True) == {
            "inlineData": {"mimeType": "image/png", "data": "iVBORw0KGgo="}
        }

    def test_data_uri_without_base64_marker(self):
        inline = parse_data_uri("data:text/plain,aGVsbG8=")
        assert inline.mimeType == "text/plain"
        assert inline.data == "aGVsbG8="

    def test_malformed_data_uri(self):
        with pytest.raises(MalformedDataURI):
            parse_data_uri("not-a-data-uri")

    @pytest.mark.asyncio
    async def test_remote_image_uses_fetcher(self):
        calls = []

        async def fetch(url):
            calls.append(url)
            return "image/jpeg", "QUJD"

        item = ContentPart.model_validate(
            {"type": "image_url", "image_url": {"url": "https://example.com/cat.jpg"}}
        )
        part = await encode_part(item, fetch)
        assert calls == ["https://example.com/cat.jpg"]
        assert part.inlineData.mimeType == "image/jpeg"
        assert part.inlineData.data == "QUJD"

    @pytest.mark.asyncio
    async def test_input_audio(self, no_fetch):
        item = ContentPart.model_validate(
            {"type": "input_audio", "input_audio": {"format": "wav", "data": "UklGRg=="}}
        )
        part = await encode_part(item, no_fetch)
        assert part.inlineData.mimeType == "audio/wav"
        assert part.inlineData.data == "UklGRg=="

    @pytest.mark.asyncio
    async def test_unknown_part_type(self, no_fetch):
        with pytest.raises(UnsupportedContentType) as exc_info:
            await encode_part(ContentPart(type="file"), no_fetch)
        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value, ClientInputError)


@pytest.mark.unit
class TestMessageTranslator:
    """Test conversion of message lists into contents + system instruction"""

    @pytest.mark.asyncio
    async def test_role_remap(self, no_fetch):
        messages = [
            ChatMessage(role="user", content="q"),
            ChatMessage(role="assistant", content="a"),
            ChatMessage(role="tool", content="t"),
            ChatMessage(role="developer", content="d"),
        ]
        system, contents = await transform_messages(messages, no_fetch)
        assert system is None
        assert [c.role for c in contents] == ["user", "model", "user", "user"]
        assert contents[1].parts[0].text == "a"

    @pytest.mark.asyncio
    async def test_system_extracted(self, no_fetch):
        messages = [
            ChatMessage(role="system", content="be brief"),
            ChatMessage(role="user", content="hi"),
        ]
        system, contents = await transform_messages(messages, no_fetch)
        assert system.model_dump(exclude_none=True) == {"parts": [{"text": "be brief"}]}
        assert len(contents) == 1
        assert contents[0].role == "user"

    @pytest.mark.asyncio
    async def test_system_only_gets_placeholder_turn(self, no_fetch):
        system, contents = await transform_messages([ChatMessage(role="system", content="rules")], no_fetch)
        assert system is not None
        assert [c.model_dump(exclude_none=True) for c in contents] == [
            {"role": "model", "parts": [{"text": " "}]}
        ]

    @pytest.mark.asyncio
    async def test_multiple_system_messages_do_not_crash(self, no_fetch):
        messages = [
            ChatMessage(role="system", content="first"),
            ChatMessage(role="system", content="second"),
            ChatMessage(role="user", content="hi"),
        ]
        system, contents = await transform_messages(messages, no_fetch)
        assert system.parts[0].text == "second"
        assert len(contents) == 1

    @pytest.mark.asyncio
    async def test_no_messages(self, no_fetch):
        system, contents = await transform_messages([], no_fetch)
        assert system is None
        assert contents == []

    @pytest.mark.asyncio
    async def test_image_only_message_gets_empty_text(self, no_fetch):
        message = ChatMessage.model_validate({
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
                {"type": "image_url", "image_url": {"url": "data:image/gif;base64,BBBB"}},
            ],
        })
        _, contents = await transform_messages([message], no_fetch)
        parts = contents[0].parts
        assert len(parts) == 3
        assert parts[-1].model_dump(exclude_none=True) == {"text": ""}
        assert [p.text for p in parts].count("") == 1

    @pytest.mark.asyncio
    async def test_mixed_message_keeps_order_without_padding(self, no_fetch):
        message = ChatMessage.model_validate({
            "role": "user",
            "content": [
                {"type": "text", "text": "what is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
            ],
        })
        _, contents = await transform_messages([message], no_fetch)
        parts = contents[0].parts
        assert len(parts) == 2
        assert parts[0].text == "what is this?"
        assert parts[1].inlineData.data == "AAAA"


@pytest.mark.unit
class TestParameterTranslator:
    """Test generationConfig mapping"""

    def test_field_mapping(self):
        config = transform_config(_request(
            stop=["END"],
            n=2,
            max_tokens=100,
            temperature=0.3,
            top_p=0.9,
            top_k=40,
            frequency_penalty=0.1,
            presence_penalty=0.2,
        ))
        assert config == {
            "stopSequences": ["END"],
            "candidateCount": 2,
            "maxOutputTokens": 100,
            "temperature": 0.3,
            "topP": 0.9,
            "topK": 40,
            "frequencyPenalty": 0.1,
            "presencePenalty": 0.2,
        }

    def test_max_completion_tokens(self):
        assert transform_config(_request(max_completion_tokens=64)) == {"maxOutputTokens": 64}

    def test_single_stop_string(self):
        assert transform_config(_request(stop="\n")) == {"stopSequences": ["\n"]}

    def test_unknown_fields_dropped(self):
        body = _request(logit_bias={"1": 5}, seed=7, temperature=0)
        assert transform_config(body) == {"temperature": 0}

    def test_empty_config(self):
        assert transform_config(_request()) == {}

    @pytest.mark.parametrize("fmt,mime", [("text", "text/plain"), ("json_object", "application/json")])
    def test_simple_response_formats(self, fmt, mime):
        config = transform_config(_request(response_format={"type": fmt}))
        assert config == {"responseMimeType": mime}

    def test_json_schema(self):
        schema = {"type": "object", "properties": {"a": {"type": "string"}}}
        config = transform_config(_request(
            response_format={"type": "json_schema", "json_schema": {"name": "x", "schema": schema}}
        ))
        assert config == {"responseSchema": schema, "responseMimeType": "application/json"}

    def test_json_schema_enum(self):
        config = transform_config(_request(
            response_format={"type": "json_schema", "json_schema": {"schema": {"enum": ["A", "B"]}}}
        ))
        assert config["responseSchema"] == {"enum": ["A", "B"]}
        assert config["responseMimeType"] == "text/x.enum"

    def test_unsupported_response_format(self):
        with pytest.raises(UnsupportedResponseFormat):
            transform_config(_request(response_format={"type": "xml"}))


@pytest.mark.unit
class TestRequestAssembler:
    """Test the assembled upstream body"""

    @pytest.mark.asyncio
    async def test_minimal_request(self, no_fetch):
        request = await transform_request(_request(), no_fetch)
        payload = request.to_payload()
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
        assert payload["generationConfig"] == {}
        assert "system_instruction" not in payload
        assert len(payload["safetySettings"]) == 5
        assert all(s["threshold"] == "BLOCK_NONE" for s in payload["safetySettings"])
        assert {s["category"] for s in payload["safetySettings"]} >= {
            "HARM_CATEGORY_HATE_SPEECH",
            "HARM_CATEGORY_CIVIC_INTEGRITY",
        }

    @pytest.mark.asyncio
    async def test_bad_format_fails_before_fetch(self, no_fetch):
        body = _request(
            messages=[{"role": "user", "content": [
                {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}},
            ]}],
            response_format={"type": "yaml"},
        )
        with pytest.raises(UnsupportedResponseFormat):
            await transform_request(body, no_fetch)


@pytest.mark.unit
class TestResolveModel:
    """Test inbound model name mapping"""

    @pytest.mark.parametrize("inbound,expected", [
        ("models/gemini-2.0-flash", "gemini-2.0-flash"),
        ("gemini-1.5-flash", "gemini-1.5-flash"),
        ("learnlm-1.5-pro-experimental", "learnlm-1.5-pro-experimental"),
        ("gpt-4", "gemini-1.5-pro-latest"),
        (None, "gemini-1.5-pro-latest"),
    ])
    def test_resolve(self, inbound, expected):
        assert resolve_model(inbound) == expected
