import json
import os
from typing import Any, AsyncIterator

import httpx

from urbanscope.core.logger import get_logger
from urbanscope.core.responses import BusinessException, ErrorCode
from urbanscope.schemas.summary import StreamChannel, SummaryRequest
from urbanscope.services import score_store
from urbanscope.services.summary_prompt import build_prompt

logger = get_logger("urbanscope.summary_generation")

DEFAULT_LLM_BASE_URL = "https://api.deepseek.com"
DEFAULT_LLM_MODEL = "deepseek-reasoner"


class LLMStreamError(RuntimeError):
    """Upstream model stream could not be opened or read."""


def _llm_endpoint() -> str:
    base = (os.getenv("URBANSCOPE_LLM_BASE_URL") or DEFAULT_LLM_BASE_URL).strip().rstrip("/")
    return base + "/chat/completions"


def _llm_model() -> str:
    return (os.getenv("URBANSCOPE_LLM_MODEL") or DEFAULT_LLM_MODEL).strip()


def _llm_api_key() -> str:
    return (os.getenv("URBANSCOPE_LLM_API_KEY") or "").strip()


def _llm_timeout() -> float:
    raw = os.getenv("URBANSCOPE_LLM_TIMEOUT", "60").strip()
    try:
        return max(1.0, float(raw))
    except ValueError:
        return 60.0


def extract_deltas(chunk: dict[str, Any]) -> list[tuple[StreamChannel, str]]:
    """Pull reasoning and content text out of one chat-completions stream chunk.

    Reasoning may sit on ``delta.reasoning_content`` or, for some gateways, on the
    chunk root. Reasoning is emitted before content when both are present.
    """
    deltas: list[tuple[StreamChannel, str]] = []
    choices = chunk.get("choices") or []
    delta = (choices[0].get("delta") or {}) if choices else {}

    reasoning = delta.get("reasoning_content")
    if not isinstance(reasoning, str):
        reasoning = chunk.get("reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        deltas.append(("reasoning", reasoning))

    content = delta.get("content")
    if isinstance(content, str) and content:
        deltas.append(("content", content))
    return deltas


async def stream_llm_deltas(
    system: str, user: str, client: httpx.AsyncClient | None = None
) -> AsyncIterator[tuple[StreamChannel, str]]:
    api_key = _llm_api_key()
    if not api_key:
        raise LLMStreamError("Missing URBANSCOPE_LLM_API_KEY")

    payload = {
        "model": _llm_model(),
        "stream": True,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
    }
    headers = {
        "Accept": "text/event-stream",
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
    }
    timeout = httpx.Timeout(_llm_timeout(), read=None)
    owned = client is None
    http = client or httpx.AsyncClient()

    try:
        async with http.stream("POST", _llm_endpoint(), headers=headers, json=payload, timeout=timeout) as resp:
            if resp.status_code >= 400:
                text = (await resp.aread()).decode("utf-8", errors="replace")
                raise LLMStreamError(f"LLM HTTPError {resp.status_code}: {text[:200]}")

            logger.info("【成功】已建立与模型的流式连接")
            async for line in resp.aiter_lines():
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if not data:
                    continue
                if data == "[DONE]":
                    return
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("模型流：忽略无法解析的数据行 %s", data[:80])
                    continue
                if not isinstance(chunk, dict):
                    continue
                for item in extract_deltas(chunk):
                    yield item
    except httpx.HTTPError as exc:
        raise LLMStreamError(f"LLM request failed: {exc}") from exc
    finally:
        if owned:
            await http.aclose()


async def generate_summary_stream(request: SummaryRequest) -> AsyncIterator[tuple[StreamChannel, str]]:
    logger.info(
        "【开始】生成AI总结\n- 国家ID: %s\n- 年份: %s\n- 语言: %s",
        request.country_id,
        request.year,
        request.language,
    )

    score = score_store.get_score(request.country_id, request.year)
    if score is None:
        logger.warning(
            "【验证失败】评分数据不存在\n- 国家ID: %s\n- 年份: %s", request.country_id, request.year
        )
        raise BusinessException(ErrorCode.RESOURCE_NOT_FOUND, "未找到该国家该年份的评分数据")
    logger.info("【成功】获取评分数据\n- 国家: %s\n- 总分: %s", score.country_name, score.total_score)

    evaluations = score_store.list_evaluations()
    logger.info("【成功】获取评价规则 - 共 %s 条", len(evaluations))

    prompt = build_prompt(score, evaluations, request.language)
    logger.info("【成功】构建提示词\n- 系统字数: %s\n- 用户字数: %s", len(prompt.system), len(prompt.user))

    async for channel, text in stream_llm_deltas(prompt.system, prompt.user):
        yield channel, text
