import json
from typing import AsyncIterator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from urbanscope.core.logger import get_logger
from urbanscope.core.responses import BusinessException
from urbanscope.schemas.summary import SummaryRequest, SummaryStreamEvent
from urbanscope.services import summary_generation

router = APIRouter(prefix="/ai", tags=["ai"])
logger = get_logger("urbanscope.routes_ai")

DONE_MARKER = "[DONE]"


def encode_sse(data: str, event: str | None = None) -> str:
    """Frame one record: optional ``event:`` line, one ``data:`` line, blank line."""
    head = f"event: {event}\n" if event else ""
    return f"{head}data: {data}\n\n"


async def summary_event_stream(payload: SummaryRequest) -> AsyncIterator[str]:
    yield ": connected\n\n"
    chunk_count = 0
    try:
        async for channel, text in summary_generation.generate_summary_stream(payload):
            chunk_count += 1
            event = SummaryStreamEvent(event=channel, data=text)
            yield encode_sse(json.dumps(event.model_dump(), ensure_ascii=False), event=channel)
        yield encode_sse(DONE_MARKER, event="end")
        logger.info("【响应】SSE完成 - 共发送 %s 个数据块", chunk_count)
    except BusinessException as exc:
        logger.warning("【失败】SSE响应 - %s", exc.message)
        yield encode_sse(json.dumps({"message": exc.message}, ensure_ascii=False), event="error")
    except Exception as exc:  # noqa: BLE001
        message = str(exc) or "AI生成失败"
        logger.exception("【失败】SSE响应 - %s", message)
        yield encode_sse(json.dumps({"message": message}, ensure_ascii=False), event="error")


@router.post("/summarySSE")
def summary_sse(payload: SummaryRequest) -> StreamingResponse:
    """SSE 流式返回AI总结；推理与正文分别以 reasoning / content 事件推送"""
    logger.info("开始SSE响应 - 国家ID: %s, 年份: %s", payload.country_id, payload.year)
    return StreamingResponse(
        summary_event_stream(payload),
        media_type="text/event-stream; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
