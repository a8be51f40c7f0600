"""CLI command tests: typer runner with mock HTTP transports."""

import json

import httpx
import pytest
from typer.testing import CliRunner

from urbanscope.cli import _globals
from urbanscope.cli.client import APIClient
from urbanscope.cli.commands import score as score_cmd
from urbanscope.cli.commands import summary as summary_cmd
from urbanscope.cli.main import app

runner = CliRunner()

STREAM_BODY = (
    ": connected\n\n"
    'event: reasoning\ndata: {"event": "reasoning", "data": "思考中"}\n\n'
    'event: content\ndata: {"event": "content", "data": "## 摘要"}\n\n'
    "event: end\ndata: [DONE]\n\n"
)


@pytest.fixture(autouse=True)
def reset_global_config(monkeypatch):
    monkeypatch.setattr(_globals, "_config", None)
    for name in ("URBANSCOPE_API_BASE", "URBANSCOPE_CLI_OUTPUT_FORMAT", "URBANSCOPE_API_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def stream_transport(monkeypatch):
    """Route run_summary through a MockTransport answering with ``handler``."""
    seen = []
    original = summary_cmd.run_summary

    def _install(handler):
        def _recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        async def _run(request, config, listener=None, http_client=None):
            async with httpx.AsyncClient(transport=httpx.MockTransport(_recording)) as http:
                return await original(request, config, listener=listener, http_client=http)

        monkeypatch.setattr(summary_cmd, "run_summary", _run)
        return seen

    return _install


def _event_stream(body: str = STREAM_BODY) -> httpx.Response:
    return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})


class TestSummaryCommand:
    def test_streams_reasoning_and_content(self, stream_transport) -> None:
        seen = stream_transport(lambda request: _event_stream())

        result = runner.invoke(app, ["summary", "CHN", "2023"])

        assert result.exit_code == 0
        assert "思考中" in result.output
        assert "## 摘要" in result.output
        assert "生成完成" in result.output
        assert json.loads(seen[0].content) == {"countryId": "CHN", "year": 2023, "language": "zh"}

    def test_global_options(self, stream_transport) -> None:
        seen = stream_transport(lambda request: _event_stream())

        result = runner.invoke(
            app, ["--api-base", "http://api.test", "--token", "tok", "summary", "DEU", "2023", "-l", "en"]
        )

        assert result.exit_code == 0
        assert str(seen[0].url) == "http://api.test/ai/summarySSE"
        assert seen[0].headers["authorization"] == "Bearer tok"
        assert json.loads(seen[0].content)["language"] == "en"

    def test_hide_reasoning(self, stream_transport) -> None:
        stream_transport(lambda request: _event_stream())

        result = runner.invoke(app, ["summary", "CHN", "2023", "--hide-reasoning"])

        assert result.exit_code == 0
        assert "思考中" not in result.output
        assert "## 摘要" in result.output

    def test_json_output(self, stream_transport) -> None:
        stream_transport(lambda request: _event_stream())

        result = runner.invoke(app, ["--json", "summary", "CHN", "2023"])

        assert result.exit_code == 0
        payload = json.loads(result.output[result.output.index("{"):])
        assert payload["phase"] == "completed"
        assert payload["reasoning"] == "思考中"
        assert payload["content"] == "## 摘要"
        assert payload["request"] == {"countryId": "CHN", "year": 2023, "language": "zh"}

    def test_server_error_exits_nonzero(self, stream_transport) -> None:
        stream_transport(lambda request: httpx.Response(503, text="unavailable"))

        result = runner.invoke(app, ["summary", "CHN", "2023"])

        assert result.exit_code == 1
        assert "生成失败" in result.output

    def test_invalid_language(self, stream_transport) -> None:
        seen = stream_transport(lambda request: _event_stream())

        result = runner.invoke(app, ["summary", "CHN", "2023", "--language", "fr"])

        assert result.exit_code == 2
        assert seen == []


class TestScoreCommands:
    @pytest.fixture
    def api_transport(self, monkeypatch):
        def _install(handler):
            def _client() -> APIClient:
                config = _globals.get_global_config()
                return APIClient(base_url=config.api_base, transport=httpx.MockTransport(handler))

            monkeypatch.setattr(score_cmd, "_client", _client)

        return _install

    def test_show_score(self, api_transport) -> None:
        detail = {
            "countryId": "CHN",
            "year": 2023,
            "totalScore": 72.4,
            "urbanizationProcessDimensionScore": 75.1,
            "humanDynamicsDimensionScore": 70.2,
            "materialDynamicsDimensionScore": 74.8,
            "spatialDynamicsDimensionScore": 69.5,
            "country": {"id": "CHN", "cnName": "中国", "enName": "China"},
        }
        api_transport(lambda request: httpx.Response(200, json={"code": 10000, "msg": "成功", "data": detail}))

        result = runner.invoke(app, ["score", "show", "CHN", "2023"])

        assert result.exit_code == 0
        assert "中国 (CHN) 2023" in result.output
        assert "综合评分: 72.4" in result.output
        assert "空间发展动力: 69.5" in result.output

    def test_show_score_not_found(self, api_transport) -> None:
        body = {"code": 20002, "msg": "未找到该国家该年份的评分数据", "data": None}
        api_transport(lambda request: httpx.Response(200, json=body))

        result = runner.invoke(app, ["score", "show", "ZZZ", "2023"])

        assert result.exit_code == 1
        assert "未找到该国家该年份的评分数据" in result.output

    def test_evaluations_json(self, api_transport) -> None:
        bands = [{"id": 1, "minScore": 0, "maxScore": 40, "evaluationText": "起步"}]
        api_transport(lambda request: httpx.Response(200, json={"code": 10000, "msg": "成功", "data": bands}))

        result = runner.invoke(app, ["--json", "score", "evaluations"])

        assert result.exit_code == 0
        assert json.loads(result.output) == bands
