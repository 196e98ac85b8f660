"""Tests for the Ollama embedding client."""
import asyncio

import httpx
import pytest

from docsqa.llm.embedding import EmbeddingClient, EmbeddingResponseError

from fakes import EMBED_URL, RecordingTransport


def test_embed_posts_model_and_prompt(embed_config):
    transport = RecordingTransport(
        lambda request: httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})
    )
    client = EmbeddingClient(embed_config, transport=transport)

    vector = asyncio.run(client.embed("What is X?"))

    assert vector == [0.1, 0.2, 0.3]
    assert str(transport.requests[0].url) == EMBED_URL
    assert transport.bodies() == [{"model": "bge-m3", "prompt": "What is X?"}]


def test_empty_text_is_sent_without_validation(embed_config):
    transport = RecordingTransport(lambda request: httpx.Response(200, json={"embedding": [0.0]}))

    asyncio.run(EmbeddingClient(embed_config, transport=transport).embed(""))

    assert transport.bodies()[0]["prompt"] == ""


def test_integer_values_are_returned_as_floats(embed_config):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"embedding": [1, 0]}))

    vector = asyncio.run(EmbeddingClient(embed_config, transport=transport).embed("x"))

    assert vector == [1.0, 0.0]
    assert all(isinstance(value, float) for value in vector)


@pytest.mark.parametrize(
    "body",
    [
        {"error": "model 'bge-m3' not found"},
        {"embedding": "not a list"},
        {"embedding": [0.1, "x"]},
        ["embedding"],
    ],
)
def test_malformed_response_raises(embed_config, body):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

    with pytest.raises(EmbeddingResponseError):
        asyncio.run(EmbeddingClient(embed_config, transport=transport).embed("x"))


def test_non_json_response_raises(embed_config):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))

    with pytest.raises(EmbeddingResponseError):
        asyncio.run(EmbeddingClient(embed_config, transport=transport).embed("x"))


def test_http_errors_propagate_without_retry(embed_config):
    transport = RecordingTransport(lambda request: httpx.Response(503))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(EmbeddingClient(embed_config, transport=transport).embed("x"))

    assert len(transport.requests) == 1
