# summary_gateway/schemas.py - shapes of data going in/out of the API (validation layer)
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

UNKNOWN_SOURCE = "unknown"


class SummarizeIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Optional[StrictStr] = None
    transcription: Optional[StrictStr] = None    # legacy alias of text
    pagePath: Optional[StrictStr] = None
    sourceId: Optional[StrictStr] = None         # legacy alias of pagePath

    def raw_text(self) -> str:
        # a present-but-empty text does not fall through to transcription
        if self.text is not None:
            return self.text
        if self.transcription is not None:
            return self.transcription
        return ""

    def raw_source_id(self) -> str:
        if self.pagePath is not None:
            return self.pagePath.strip()
        if self.sourceId is not None:
            return self.sourceId.strip()
        return UNKNOWN_SOURCE


class SummarizeOut(BaseModel):
    text: str
    cached: bool


class ErrorOut(BaseModel):
    error: str


class MessageOut(BaseModel):
    message: str


class CachedSummaryPayload(BaseModel):
    """Document stored under each cache key."""

    text: str
    model: str
    createdAt: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
