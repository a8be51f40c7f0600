"""SSE end-to-end acceptance checks (no manual inspection required).

Runs the summary endpoint through FastAPI TestClient with a scripted model
stream and asserts record framing for:
- reasoning + content + [DONE]
- missing score -> error record
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path
from typing import AsyncIterator
from unittest.mock import patch

# Ensure repository root is importable when running as script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("URBANSCOPE_DB_PATH", str(Path(tempfile.gettempdir()) / "urbanscope_e2e" / "e2e.db"))

from fastapi.testclient import TestClient

from urbanscope.cli.lib.sse import SSERecordDecoder, StreamDone, StreamFailure, StreamFragment, resolve_record
from urbanscope.main import app
from urbanscope.services import summary_generation
from urbanscope.services.seed_data import seed_defaults


async def _scripted_llm(system: str, user: str, client=None) -> AsyncIterator[tuple[str, str]]:
    for item in (("reasoning", "分析得分"), ("reasoning", "与评价体系。"), ("content", "## 摘要\n"), ("content", "稳步推进。")):
        yield item


def _stream(client: TestClient, body: dict) -> list:
    with client.stream("POST", "/ai/summarySSE", json=body) as resp:
        assert resp.status_code == 200, f"stream failed: {resp.status_code}"
        assert resp.headers["content-type"].startswith("text/event-stream")
        raw = "".join(list(resp.iter_text()))
    decoder = SSERecordDecoder()
    records = decoder.feed(raw) + decoder.flush()
    return [item for item in (resolve_record(r) for r in records) if item is not None]


def main() -> None:
    seed_defaults()
    client = TestClient(app)

    with patch.object(summary_generation, "stream_llm_deltas", _scripted_llm):
        # 1) happy path
        items = _stream(client, {"countryId": "CHN", "year": 2023, "language": "zh"})
        assert isinstance(items[-1], StreamDone), "missing [DONE]"
        fragments = [i for i in items if isinstance(i, StreamFragment)]
        reasoning = "".join(f.payload for f in fragments if f.channel == "reasoning")
        content = "".join(f.payload for f in fragments if f.channel == "content")
        assert reasoning == "分析得分与评价体系。", reasoning
        assert content == "## 摘要\n稳步推进。", content

        # 2) missing score
        items = _stream(client, {"countryId": "NOPE", "year": 1999})
        assert isinstance(items[-1], StreamFailure), "missing error record"

    print("[OK] SSE acceptance passed")


if __name__ == "__main__":
    main()
