"""Tests for GoogleProvider: body layout, endpoints and stream reassembly."""

import json
import logging

import httpx
import pytest

from schema_llm.errors import (
    ConfigurationError,
    HttpStatusError,
    MalformedStreamChunk,
    TransportError,
)
from schema_llm.providers.google_provider import (
    GoogleModels,
    GoogleProvider,
    model_text_from_chunk,
    parse_stream_line,
)


def _sse(*lines: str) -> bytes:
    return "".join(line + "\r\n\r\n" for line in lines).encode()


def test_identifier_shared_by_both_deployments():
    assert GoogleProvider(GoogleModels.GEMINI_PRO).identifier() == "gemini-pro"
    assert GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX).identifier() == "gemini-pro"


def test_rate_limit_derives_tpm_from_rpm():
    limit = GoogleProvider(GoogleModels.GEMINI_PRO).rate_limit()

    assert limit.rpm == 60
    assert limit.tpm == 60 * 32_000


def test_public_endpoint_needs_no_environment(monkeypatch):
    monkeypatch.delenv("GOOGLE_PROJECT_ID", raising=False)

    url = GoogleProvider(GoogleModels.GEMINI_PRO).endpoint()

    assert url.startswith("https://generativelanguage.googleapis.com/")
    assert "gemini-pro:streamGenerateContent" in url


def test_vertex_endpoint_uses_default_region(monkeypatch):
    monkeypatch.delenv("GOOGLE_REGION", raising=False)
    monkeypatch.setenv("GOOGLE_PROJECT_ID", "my-project")

    url = GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX).endpoint()

    assert url.startswith("https://us-central1-aiplatform.googleapis.com/")
    assert "/projects/my-project/locations/us-central1/" in url


def test_vertex_endpoint_honours_region(monkeypatch):
    monkeypatch.setenv("GOOGLE_REGION", "europe-west4")
    monkeypatch.setenv("GOOGLE_PROJECT_ID", "my-project")

    url = GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX).endpoint()

    assert url.startswith("https://europe-west4-aiplatform.googleapis.com/")


def test_vertex_endpoint_requires_project_id(monkeypatch):
    monkeypatch.delenv("GOOGLE_PROJECT_ID", raising=False)

    with pytest.raises(ConfigurationError, match="GOOGLE_PROJECT_ID"):
        GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX).endpoint()


def test_build_body_has_three_ordered_parts(colors_schema):
    provider = GoogleProvider()

    body = provider.build_body("list two colors", colors_schema, False, 1000, 0.2)

    parts = [part["text"] for part in body["contents"]["parts"]]
    assert len(parts) == 3
    assert parts[0] == provider.base_instructions(False)
    assert parts[1].startswith("'Output Json schema': ")
    assert json.loads(parts[1].split(": ", 1)[1]) == colors_schema
    assert parts[2].endswith("list two colors")
    assert body["contents"]["role"] == "user"
    assert body["generationConfig"] == {"temperature": 0.2}


def test_build_body_function_call_changes_base_instructions(colors_schema):
    provider = GoogleProvider()

    text_mode = provider.build_body("x", colors_schema, False, 10, 0)
    call_mode = provider.build_body("x", colors_schema, True, 10, 0)

    assert text_mode["contents"]["parts"][0] != call_mode["contents"]["parts"][0]


def test_parse_stream_line_strips_data_prefix():
    assert parse_stream_line('data: {"a": 1}') == {"a": 1}
    assert parse_stream_line('data:{"a": 1}') == {"a": 1}


def test_parse_stream_line_ignores_blank_and_comment_lines():
    assert parse_stream_line("") is None
    assert parse_stream_line("   ") is None
    assert parse_stream_line(": keep-alive") is None
    assert parse_stream_line("event: message") is None


def test_parse_stream_line_rejects_broken_json():
    with pytest.raises(MalformedStreamChunk):
        parse_stream_line('data: {"candidates": [')


def test_parse_stream_line_rejects_non_object():
    with pytest.raises(MalformedStreamChunk, match="expected a JSON object"):
        parse_stream_line("data: [1, 2]")


def test_model_text_skips_other_roles():
    chunk = {
        "candidates": [
            {"content": {"role": "user", "parts": [{"text": "ignored"}]}},
            {"content": {"role": "model", "parts": [{"text": "a"}, {"text": "b"}]}},
            {"content": {"parts": [{"text": "no role"}]}},
        ]
    }

    assert model_text_from_chunk(chunk) == "ab"


def test_model_text_tolerates_candidate_without_content():
    chunk = {"candidates": [{"finishReason": "STOP"}, {"content": {"role": "model"}}]}

    assert model_text_from_chunk(chunk) == ""


@pytest.mark.parametrize(
    "chunk",
    [
        {"candidates": [None]},
        {"candidates": "oops"},
        {"usageMetadata": {"totalTokenCount": 3}},
        {"candidates": [{"content": "text"}]},
        {"candidates": [{"content": {"role": "model", "parts": ["x"]}}]},
        {"candidates": [{"content": {"role": "model", "parts": {"text": "x"}}}]},
        {"error": {"message": "no code"}},
    ],
    ids=[
        "null-candidate",
        "candidates-not-list",
        "no-candidates",
        "content-not-object",
        "part-not-object",
        "parts-not-list",
        "error-without-code",
    ],
)
def test_model_text_rejects_unexpected_shape(chunk):
    with pytest.raises(MalformedStreamChunk) as exc_info:
        model_text_from_chunk(chunk, "data: " + json.dumps(chunk))

    assert exc_info.value.chunk.startswith("data: ")


def test_model_text_raises_in_stream_error_status():
    chunk = {"error": {"code": 500, "message": "internal", "status": "INTERNAL"}}

    with pytest.raises(HttpStatusError) as exc_info:
        model_text_from_chunk(chunk)

    assert exc_info.value.status_code == 500
    assert "internal" in exc_info.value.body
    assert exc_info.value.is_retryable


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "line",
    [
        'data: {"candidates": [null]}',
        'data: {"candidates": "oops"}',
        'data: {"candidates":[{"content":{"role":"model","parts":["x"]}}]}',
    ],
)
async def test_call_aborts_on_misshapen_chunk(recording_transport, gemini_chunk, line):
    stream = _sse(gemini_chunk("fine"), line)
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    with pytest.raises(MalformedStreamChunk) as exc_info:
        await provider.call("key", {})

    assert exc_info.value.chunk == line


@pytest.mark.asyncio
async def test_call_surfaces_in_stream_error(recording_transport, gemini_chunk):
    stream = _sse(gemini_chunk("partial"), 'data: {"error":{"code":503,"message":"overloaded"}}')
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    with pytest.raises(HttpStatusError) as exc_info:
        await provider.call("key", {})

    assert exc_info.value.status_code == 503
    assert "overloaded" in exc_info.value.body


@pytest.mark.asyncio
async def test_call_concatenates_chunks_in_arrival_order(recording_transport, gemini_chunk):
    stream = _sse(gemini_chunk("one "), gemini_chunk("two "), gemini_chunk("three"))
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    text = await provider.call("key", {"contents": {}})

    assert text == "one two three"


@pytest.mark.asyncio
async def test_call_drops_non_model_chunks(recording_transport, gemini_chunk):
    stream = _sse(
        gemini_chunk("kept"),
        gemini_chunk("dropped", role="tool"),
        gemini_chunk("dropped", role="system"),
        gemini_chunk("!"),
    )
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    assert await provider.call("key", {}) == "kept!"


@pytest.mark.asyncio
async def test_call_buffers_chunks_split_across_reads(recording_transport, gemini_chunk):
    data = _sse(gemini_chunk('{"colors":'), gemini_chunk('["red"]}'))

    async def network_reads():
        # Split mid-object, and again mid-line
        yield data[:17]
        yield data[17:70]
        yield data[70:]

    transport = recording_transport(
        lambda request: httpx.Response(200, content=network_reads())
    )
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    assert await provider.call("key", {}) == '{"colors":["red"]}'


@pytest.mark.asyncio
async def test_call_aborts_on_malformed_chunk(recording_transport, gemini_chunk):
    stream = _sse(gemini_chunk("fine"), "data: {not json}")
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    with pytest.raises(MalformedStreamChunk):
        await provider.call("key", {})


@pytest.mark.asyncio
async def test_call_raises_http_status_error_with_body(recording_transport):
    transport = recording_transport(lambda request: httpx.Response(429, text="rate limited"))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    with pytest.raises(HttpStatusError) as exc_info:
        await provider.call("key", {})

    assert exc_info.value.status_code == 429
    assert exc_info.value.body == "rate limited"
    assert exc_info.value.is_retryable


@pytest.mark.asyncio
async def test_call_maps_timeouts_to_transport_error(recording_transport):
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=recording_transport(handler))

    with pytest.raises(TransportError, match="timed out"):
        await provider.call("key", {})


@pytest.mark.asyncio
async def test_call_maps_connection_errors_to_transport_error(recording_transport):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=recording_transport(handler))

    with pytest.raises(TransportError):
        await provider.call("key", {})


@pytest.mark.asyncio
async def test_public_api_sends_api_key_header(recording_transport, gemini_chunk):
    transport = recording_transport(
        lambda request: httpx.Response(200, content=_sse(gemini_chunk("x")))
    )
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)

    await provider.call("secret", {"contents": {}})

    request = transport.requests[0]
    assert request.method == "POST"
    assert request.headers["x-goog-api-key"] == "secret"
    assert "authorization" not in request.headers
    assert json.loads(request.content) == {"contents": {}}


@pytest.mark.asyncio
async def test_vertex_sends_bearer_token(monkeypatch, recording_transport, gemini_chunk):
    monkeypatch.setenv("GOOGLE_PROJECT_ID", "my-project")
    transport = recording_transport(
        lambda request: httpx.Response(200, content=_sse(gemini_chunk("x")))
    )
    provider = GoogleProvider(GoogleModels.GEMINI_PRO_VERTEX, transport=transport)

    await provider.call("token", {})

    request = transport.requests[0]
    assert request.headers["authorization"] == "Bearer token"
    assert request.url.host == "us-central1-aiplatform.googleapis.com"


@pytest.mark.asyncio
async def test_debug_logs_each_chunk(caplog, recording_transport, gemini_chunk):
    stream = _sse(gemini_chunk("a"), gemini_chunk("b"))
    transport = recording_transport(lambda request: httpx.Response(200, content=stream))
    provider = GoogleProvider(GoogleModels.GEMINI_PRO, transport=transport)
    caplog.set_level(logging.INFO, logger="schema_llm")

    text = await provider.call("key", {}, debug=True)

    assert text == "ab"
    chunk_logs = [r for r in caplog.records if "Received response chunk" in r.getMessage()]
    assert len(chunk_logs) >= 2


@pytest.mark.asyncio
async def test_extract_text_is_identity():
    provider = GoogleProvider()

    assert provider.extract_text("already text", False) == "already text"
    assert provider.extract_text("already text", True) == "already text"
