from typing import Any

from fastapi import APIRouter, Query

from urbanscope.core.responses import BusinessException, ErrorCode, ok
from urbanscope.services import score_store

router = APIRouter(prefix="/score", tags=["score"])


@router.get("/detail")
def score_detail(
    country_id: str = Query(alias="countryId", min_length=1),
    year: int = Query(),
) -> dict[str, Any]:
    score = score_store.get_score(country_id, year)
    if score is None:
        raise BusinessException(ErrorCode.RESOURCE_NOT_FOUND, "未找到该国家该年份的评分数据")
    return ok(score)


@router.get("/evaluations")
def score_evaluations() -> dict[str, Any]:
    return ok(score_store.list_evaluations())
