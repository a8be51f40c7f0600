from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CountryInfo(BaseModel):
    id: str
    cn_name: str | None = Field(default=None, serialization_alias="cnName")
    en_name: str | None = Field(default=None, serialization_alias="enName")


class ScoreDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    country_id: str = Field(serialization_alias="countryId")
    year: int
    total_score: float = Field(serialization_alias="totalScore")
    urbanization_process_dimension_score: float = Field(
        serialization_alias="urbanizationProcessDimensionScore"
    )
    human_dynamics_dimension_score: float = Field(serialization_alias="humanDynamicsDimensionScore")
    material_dynamics_dimension_score: float = Field(serialization_alias="materialDynamicsDimensionScore")
    spatial_dynamics_dimension_score: float = Field(serialization_alias="spatialDynamicsDimensionScore")
    country: CountryInfo | None = None
    updated_at: str | None = Field(default=None, serialization_alias="updatedAt")

    @property
    def country_name(self) -> str:
        if self.country is None:
            return ""
        return self.country.cn_name or self.country.en_name or ""


class ScoreEvaluation(BaseModel):
    id: int
    min_score: float = Field(serialization_alias="minScore")
    max_score: float = Field(serialization_alias="maxScore")
    evaluation_text: str | None = Field(default=None, serialization_alias="evaluationText")
