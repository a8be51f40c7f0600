"""Live terminal renderer for AI summary sessions.

Used as the session listener: fragments are printed as they arrive, a
section header is printed whenever the stream switches channel.
"""

from __future__ import annotations

from typing import Optional

from urbanscope.cli.lib.safe_output import emoji, safe_print
from urbanscope.cli.lib.sse import StreamFragment
from urbanscope.cli.summary_stream import SummaryPhase, SummarySession

SEPARATOR = "-" * 60


class SummaryRenderer:
    """Render a summary stream with stable block structure."""

    _SECTION_TITLE = {
        "reasoning": emoji("🤔", "[THINK]") + " 推理过程",
        "content": emoji("📝", "[SUMMARY]") + " AI 智能总结",
    }

    def __init__(self, show_reasoning: bool = True):
        self.show_reasoning = show_reasoning
        self._section: Optional[str] = None

    def __call__(self, session: SummarySession, fragment: Optional[StreamFragment]) -> None:
        if fragment is not None:
            self.render_fragment(fragment)
        elif session.is_terminal:
            self.render_finish(session)

    def render_fragment(self, fragment: StreamFragment) -> None:
        if fragment.channel == "reasoning" and not self.show_reasoning:
            return
        if fragment.channel != self._section:
            self._section = fragment.channel
            safe_print(f"\n{self._SECTION_TITLE[fragment.channel]}")
            safe_print(SEPARATOR)
        safe_print(fragment.payload, end="", flush=True)

    def render_finish(self, session: SummarySession) -> None:
        safe_print("")
        seconds = session.reasoning_seconds
        if seconds is not None:
            safe_print(f"已深度思考 {seconds:.1f} 秒")

        if session.phase is SummaryPhase.COMPLETED:
            safe_print(SEPARATOR)
            safe_print(f"{emoji('✅', '[DONE]')} 生成完成")
        elif session.phase is SummaryPhase.CANCELLED:
            safe_print(SEPARATOR)
            safe_print(f"{emoji('⏹', '[STOPPED]')} 已停止生成")
        elif session.phase is SummaryPhase.ERRORED:
            self.render_error(session.error_message or "AI生成失败")

    def render_error(self, error_msg: str) -> None:
        safe_print(f"\n{emoji('❌', '[ERROR]')} 生成失败: {error_msg}")
