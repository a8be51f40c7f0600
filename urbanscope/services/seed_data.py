"""Idempotent bootstrap of reference score data.

Safe to run repeatedly: every row is written through an upsert keyed on its
natural identity, so re-running updates in place instead of duplicating.
"""

from __future__ import annotations

from dataclasses import dataclass

from urbanscope.core.logger import get_logger
from urbanscope.services import score_store

logger = get_logger("urbanscope.seed_data")


@dataclass(frozen=True)
class SeedScore:
    country_id: str
    cn_name: str
    en_name: str
    year: int
    total: float
    urbanization_process: float
    human_dynamics: float
    material_dynamics: float
    spatial_dynamics: float


DEFAULT_EVALUATIONS: tuple[tuple[float, float, str], ...] = (
    (0, 40, "城镇化处于起步阶段，人口与产业集聚程度较低，空间扩张缓慢。"),
    (40, 60, "城镇化处于加速阶段，人口迁移活跃，经济与空间动力逐步增强。"),
    (60, 80, "城镇化处于成熟阶段，城市体系较完善，各维度发展相对均衡。"),
    (80, 100, "城镇化处于高度发达阶段，城市功能完备，发展以质量提升为主。"),
)

DEFAULT_SCORES: tuple[SeedScore, ...] = (
    SeedScore("CHN", "中国", "China", 2023, 72.4, 75.1, 70.2, 74.8, 69.5),
    SeedScore("IND", "印度", "India", 2023, 48.6, 41.3, 55.0, 50.2, 47.9),
    SeedScore("DEU", "德国", "Germany", 2023, 83.2, 86.0, 79.4, 84.1, 83.3),
)


def seed_defaults(
    evaluations: tuple[tuple[float, float, str], ...] = DEFAULT_EVALUATIONS,
    scores: tuple[SeedScore, ...] = DEFAULT_SCORES,
) -> dict[str, int]:
    logger.info("开始初始化评分数据...")
    score_store.init_db()

    for min_score, max_score, text in evaluations:
        score_store.upsert_evaluation(min_score, max_score, text)
    logger.info("评价体系已写入 - 共 %s 条", len(evaluations))

    for item in scores:
        score_store.upsert_country(item.country_id, item.cn_name, item.en_name)
        score_store.upsert_score(
            item.country_id,
            item.year,
            item.total,
            item.urbanization_process,
            item.human_dynamics,
            item.material_dynamics,
            item.spatial_dynamics,
        )
    logger.info("国家评分已写入 - 共 %s 条", len(scores))

    return {
        "countries": score_store.count_rows("country"),
        "scores": score_store.count_rows("score"),
        "evaluations": score_store.count_rows("score_evaluation"),
    }
