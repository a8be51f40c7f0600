import asyncio
import json

import httpx
import pytest

from urbanscope.services.summary_generation import LLMStreamError, extract_deltas, stream_llm_deltas


def _chunk(content=None, reasoning=None) -> str:
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    return "data: " + json.dumps({"choices": [{"delta": delta}]}, ensure_ascii=False)


async def _collect(handler, system="sys", user="usr"):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        return [item async for item in stream_llm_deltas(system, user, client=http)]


@pytest.fixture
def llm_env(monkeypatch):
    monkeypatch.setenv("URBANSCOPE_LLM_API_KEY", "sk-test")
    monkeypatch.setenv("URBANSCOPE_LLM_BASE_URL", "https://llm.test/v1/")
    monkeypatch.delenv("URBANSCOPE_LLM_MODEL", raising=False)


class TestExtractDeltas:
    def test_reasoning_before_content(self) -> None:
        chunk = {"choices": [{"delta": {"content": "b", "reasoning_content": "a"}}]}
        assert extract_deltas(chunk) == [("reasoning", "a"), ("content", "b")]

    def test_root_reasoning_fallback(self) -> None:
        chunk = {"reasoning_content": "r", "choices": [{"delta": {}}]}
        assert extract_deltas(chunk) == [("reasoning", "r")]

    def test_empty_chunk(self) -> None:
        assert extract_deltas({}) == []
        assert extract_deltas({"choices": [{"delta": {"content": ""}}]}) == []


class TestStreamLLMDeltas:
    def test_stream_parses_lines_until_done(self, llm_env) -> None:
        seen = []
        body = "\n".join(
            [
                ": keep-alive",
                _chunk(reasoning="想"),
                "",
                "data: not-json",
                _chunk(content="写"),
                "data: [DONE]",
                _chunk(content="after"),
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

        items = asyncio.run(_collect(handler))

        assert items == [("reasoning", "想"), ("content", "写")]
        request = seen[0]
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload["model"] == "deepseek-reasoner"
        assert payload["stream"] is True
        assert payload["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "usr"},
        ]

    def test_missing_api_key(self, monkeypatch) -> None:
        monkeypatch.delenv("URBANSCOPE_LLM_API_KEY", raising=False)
        with pytest.raises(LLMStreamError):
            asyncio.run(_collect(lambda request: httpx.Response(200, text="")))

    def test_upstream_status_error(self, llm_env) -> None:
        with pytest.raises(LLMStreamError) as exc_info:
            asyncio.run(_collect(lambda request: httpx.Response(401, text="invalid key")))
        assert "401" in str(exc_info.value)

    def test_connection_error(self, llm_env) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LLMStreamError):
            asyncio.run(_collect(handler))
