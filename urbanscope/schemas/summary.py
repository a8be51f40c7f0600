from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Language = Literal["zh", "en"]
StreamChannel = Literal["content", "reasoning"]


class SummaryRequest(BaseModel):
    """Request for an AI summary of one country's scores in one year."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    country_id: str = Field(alias="countryId", min_length=1)
    year: int
    language: Language = "zh"

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(by_alias=True)


class SummaryStreamEvent(BaseModel):
    """JSON body of one ``data:`` line on the summary stream."""

    event: StreamChannel
    data: str
