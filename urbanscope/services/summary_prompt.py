from __future__ import annotations

from dataclasses import dataclass

from urbanscope.schemas.score import ScoreDetail, ScoreEvaluation
from urbanscope.schemas.summary import Language

EVALUATION_TEXT_LIMIT = 60

_SYSTEM_ZH = (
    "你是一名研究城市与区域发展的专家。请基于提供的得分、评价体系与互联网最新公开资料，"
    "撰写严谨、客观、可读性强的年度国家综合评价报告。引用事实需准确，避免夸张。"
    "必要时在文中自然融入来源出处的组织或报告名称。请直接输出Markdown格式内容，不要用代码块包装。"
    "字数控制在500-1000字。"
)

_SYSTEM_EN = (
    "You are an expert in urban and regional development. Based on the provided scores, "
    "evaluation framework, and the latest public information on the internet, write a rigorous, "
    "objective, and readable annual national comprehensive assessment. Cite facts accurately and "
    "avoid exaggeration. Optionally mention credible sources naturally. Please output Markdown "
    "content directly without wrapping it in code blocks."
)

_STRUCTURE_ZH = (
    "请联网检索近一年内与该国家相关的城镇化、人口、经济、空间等维度的重要事实变化"
    "（政策、数据发布、报告要点、重大项目等），结合上述得分给出结构化总结。包含以下结构：\n\n"
    "## 摘要\n\n## 综合判断\n\n## 维度分析\n"
    "- **城镇化进程**\n- **人口迁徙动力**\n- **经济发展动力**\n- **空间发展动力**\n\n"
    "## 政策建议\n\n## 风险与不确定性。"
)

_STRUCTURE_EN = (
    "Search the web for past-year developments relevant to urbanization, population, economy, "
    "and spatial dynamics for this country, then produce a structured summary in Markdown format "
    "with the following structure:\n\n"
    "## Abstract\n\n## Overall Assessment\n\n## Dimension Analysis\n"
    "- **Urbanization Process**\n- **Human Dynamics**\n- **Material/Economic Dynamics**\n"
    "- **Spatial Dynamics**\n\n## Policy Recommendations\n\n## Risks and Uncertainties\n\n"
    "Length: 600-900 words."
)


@dataclass(frozen=True)
class SummaryPrompt:
    system: str
    user: str


def _fmt(value: float) -> str:
    return f"{value:g}"


def summarize_evaluations(evaluations: list[ScoreEvaluation]) -> str:
    """One ``(min - max) -> text`` line per band, text cut to 60 characters."""
    lines = []
    for item in evaluations:
        text = (item.evaluation_text or "")[:EVALUATION_TEXT_LIMIT]
        lines.append(f"({_fmt(item.min_score)} - {_fmt(item.max_score)}) -> {text}")
    return "\n".join(lines)


def build_prompt(
    score: ScoreDetail, evaluations: list[ScoreEvaluation], language: Language = "zh"
) -> SummaryPrompt:
    cn_name = score.country.cn_name if score.country else None
    en_name = score.country.en_name if score.country else None
    country_name = cn_name or en_name or "该国家"
    evaluation_summary = summarize_evaluations(evaluations)

    if language == "zh":
        user_lines = [
            f"国家：{country_name}（{en_name or ''}）",
            f"年份：{score.year}",
            f"综合评分：{_fmt(score.total_score)}",
            "分维度得分："
            f"城镇化进程={_fmt(score.urbanization_process_dimension_score)}；"
            f"人口迁徙动力={_fmt(score.human_dynamics_dimension_score)}；"
            f"经济发展动力={_fmt(score.material_dynamics_dimension_score)}；"
            f"空间发展动力={_fmt(score.spatial_dynamics_dimension_score)}",
            "评价模型摘要（来自系统内\"评估模型\"页）：重视全样本与重点样本、多维度综合评价、"
            "区域性集中趋势，以及基于客观赋权法的综合得分。",
            f"评价体系（分数区间 -> 文案摘要）：\n{evaluation_summary}",
            _STRUCTURE_ZH,
        ]
        return SummaryPrompt(system=_SYSTEM_ZH, user="\n".join(user_lines))

    user_lines = [
        f"Country: {en_name or country_name}",
        f"Year: {score.year}",
        f"Total Score: {_fmt(score.total_score)}",
        "Dimension Scores: "
        f"Urbanization Process={_fmt(score.urbanization_process_dimension_score)}; "
        f"Human Dynamics={_fmt(score.human_dynamics_dimension_score)}; "
        f"Material/Economic Dynamics={_fmt(score.material_dynamics_dimension_score)}; "
        f"Spatial Dynamics={_fmt(score.spatial_dynamics_dimension_score)}",
        "Model summary: emphasizes full sample vs. key samples, multidimensional evaluation, "
        "regional concentration trends, and objective weighting-based composite scoring.",
        f"Evaluation framework (range -> brief text):\n{evaluation_summary}",
        _STRUCTURE_EN,
    ]
    return SummaryPrompt(system=_SYSTEM_EN, user="\n".join(user_lines))
