import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from .config import get_settings, extract_api_key
from .errors import ClientInputError, GatewayError, map_gateway_error, map_generic_error
from .gemini_client import GeminiApiClient
from .gemini_models import GenerateContentResponse
from .openai_models import ChatCompletionsRequest, EmbeddingsRequest, ModelList
from .request_translator import resolve_model, transform_request
from .response_translator import (
    generate_completion_id,
    process_completions_response,
    transform_embeddings,
    transform_models,
)
from .sse import iter_sse_payloads
from .streaming import StreamTrackerState, openai_stream_from_gemini

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_client(req: Request) -> GeminiApiClient:
    client = getattr(req.app.state, "gemini_client", None)
    if client is None:
        client = GeminiApiClient()
        req.app.state.gemini_client = client
    return client


def _api_key(req: Request) -> Optional[str]:
    return extract_api_key(req.headers.get("authorization"))


async def create_chat_completion(
    body: ChatCompletionsRequest,
    client: GeminiApiClient,
    api_key: Optional[str],
) -> Response:
    """
    Translate the request, call Gemini and translate the answer back.
    Input errors surface before the upstream is contacted; a non-2xx upstream
    answer surfaces as UpstreamProtocolError carrying status and body.
    """
    model = resolve_model(body.model)
    gemini_request = await transform_request(body, client.fetch_image)
    completion_id = generate_completion_id()

    if not body.stream:
        data = await client.generate_content(model, gemini_request, api_key)
        completion = process_completions_response(
            GenerateContentResponse.model_validate(data), model, completion_id
        )
        return JSONResponse(completion.model_dump())

    upstream = await client.stream_generate_content(model, gemini_request, api_key)
    state = StreamTrackerState(id=completion_id, model=model, include_usage=body.include_usage)

    async def gen():
        try:
            payloads = iter_sse_payloads(client.iter_text(upstream))
            async for frame in openai_stream_from_gemini(payloads, state):
                yield frame
        except GatewayError as e:
            # Headers are already sent; terminate the stream
            logger.error(f"Upstream stream failed: {e.message}")
            yield b"data: [DONE]\n\n"
        finally:
            # Release the upstream connection even if the client went away
            await upstream.aclose()

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
    }
    return StreamingResponse(
        gen(),
        media_type="text/event-stream; charset=utf-8",
        headers=headers,
    )


@router.get("/")
async def root():
    return PlainTextResponse("Proxy is running!")


# Matched by suffix: SDK base URLs carry prefixes such as /v1 or /v1beta/openai
@router.post("/chat/completions")
@router.post("/{prefix:path}/chat/completions")
async def chat_completions(request: Request, body: ChatCompletionsRequest):
    try:
        return await create_chat_completion(body, _get_client(request), _api_key(request))
    except GatewayError as e:
        return map_gateway_error(e)
    except Exception as e:
        return map_generic_error(e)


@router.post("/embeddings")
@router.post("/{prefix:path}/embeddings")
async def embeddings(request: Request, body: EmbeddingsRequest):
    settings = get_settings()
    try:
        if not isinstance(body.model, str):
            raise ClientInputError("model is not specified")
        inputs = body.input if isinstance(body.input, list) else [body.input]

        if body.model.startswith("models/"):
            model = body.model
            reported_model = body.model
        else:
            reported_model = settings.DEFAULT_EMBEDDINGS_MODEL
            model = f"models/{reported_model}"

        requests = []
        for text in inputs:
            item = {"model": model, "content": {"parts": [{"text": text}]}}
            if body.dimensions is not None:
                item["outputDimensionality"] = body.dimensions
            requests.append(item)

        data = await _get_client(request).batch_embed_contents(model, {"requests": requests}, _api_key(request))
        return JSONResponse(transform_embeddings(data, reported_model).model_dump())
    except GatewayError as e:
        return map_gateway_error(e)
    except Exception as e:
        return map_generic_error(e)


@router.get("/models", response_model=ModelList)
@router.get("/{prefix:path}/models", response_model=ModelList)
async def list_models(request: Request):
    try:
        data = await _get_client(request).list_models(_api_key(request))
        return transform_models(data)
    except GatewayError as e:
        return map_gateway_error(e)
    except Exception as e:
        return map_generic_error(e)
