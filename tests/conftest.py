"""Shared test fixtures and configuration"""
import json
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from gemini_gateway.main import app

API_ROOT = "https://generativelanguage.googleapis.com/v1beta"


@pytest.fixture
def app_client():
    """Test client with a fresh upstream client per test."""
    with TestClient(app) as client:
        yield client
    app.state.gemini_client = None


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer test-gemini-key"}


@pytest.fixture
def no_fetch():
    """Image fetcher for tests that must not reach the network."""
    async def fetch(url: str):
        raise AssertionError(f"unexpected fetch of {url}")
    return fetch


def gemini_chunk(text: str = None, finish_reason: str = None, index: int = None, usage: Dict[str, int] = None) -> Dict[str, Any]:
    candidate: Dict[str, Any] = {}
    if text is not None:
        candidate["content"] = {"role": "model", "parts": [{"text": text}]}
    if finish_reason is not None:
        candidate["finishReason"] = finish_reason
    if index is not None:
        candidate["index"] = index
    data: Dict[str, Any] = {"candidates": [candidate]}
    if usage is not None:
        data["usageMetadata"] = usage
    return data


def sse_body(payloads: List[Dict[str, Any]], terminator: str = "\r\n\r\n") -> str:
    return "".join(f"data: {json.dumps(p)}{terminator}" for p in payloads)


def parse_sse(text: str) -> List[Any]:
    """Split an OpenAI SSE body into decoded events; [DONE] stays a string."""
    events = []
    for block in text.split("\n\n"):
        if not block:
            continue
        assert block.startswith("data: ")
        data = block[len("data: "):]
        events.append(data if data == "[DONE]" else json.loads(data))
    return events
