"""
Retrieval data models.

Score bags are a tagged union discriminated on ``method``: the tier that
produced a unit is always recoverable from its score.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field

from doccontext.storage.models import Section


class RetrievalMethod(str, Enum):
    HYBRID = "hybrid"
    KEYWORD = "keyword"
    EMERGENCY = "emergency"


class HybridScore(BaseModel):
    """Normalized semantic and keyword scores and their weighted combination."""

    method: Literal["hybrid"] = "hybrid"
    keyword: float = Field(description="Max-normalized keyword score")
    semantic: float = Field(description="Max-normalized semantic score")
    combined: float = Field(description="Weighted combination used for ordering")

    @property
    def value(self) -> float:
        return self.combined


class KeywordScore(BaseModel):
    method: Literal["keyword"] = "keyword"
    keyword: float = Field(description="Raw keyword score")

    @property
    def value(self) -> float:
        return self.keyword


class EmergencyScore(BaseModel):
    method: Literal["emergency"] = "emergency"
    matches: int = Field(default=0, description="Query-term matches in the excerpt")

    @property
    def value(self) -> float:
        return float(self.matches)


Score = Annotated[Union[HybridScore, KeywordScore, EmergencyScore], Field(discriminator="method")]


class ScoredUnit(BaseModel):
    """Scorer output. ``semantic is None`` means semantic scoring was unavailable."""

    section: Section
    document_name: str
    keyword: float = 0.0
    semantic: Optional[float] = None


class RankedUnit(BaseModel):
    section: Section
    document_name: str
    score: Score


class SelectedUnit(BaseModel):
    """A section chosen for the context, possibly truncated to fit the budget."""

    document_id: str
    document_name: str
    section_id: str
    title: str
    content: str
    page_number: Optional[int] = None
    position: int = 0
    token_count: int
    truncated: bool = False
    score: Score

    @computed_field
    @property
    def method(self) -> RetrievalMethod:
        return RetrievalMethod(self.score.method)

    @classmethod
    def from_ranked(
        cls, unit: RankedUnit, content: Optional[str] = None, token_count: Optional[int] = None, truncated: bool = False
    ) -> "SelectedUnit":
        section = unit.section
        return cls(
            document_id=section.document_id,
            document_name=unit.document_name,
            section_id=section.id,
            title=section.title,
            content=section.content if content is None else content,
            page_number=section.page_number,
            position=section.position,
            token_count=section.token_count if token_count is None else token_count,
            truncated=truncated,
            score=unit.score,
        )


class ContextSelection(BaseModel):
    """The result of one ``select_context`` call."""

    units: List[SelectedUnit] = Field(default_factory=list)
    total_tokens: int = 0
    token_budget: int = 0
    method: Optional[RetrievalMethod] = None
    warning: Optional[str] = None
    trace_id: Optional[str] = None

    @computed_field
    @property
    def files_used(self) -> List[str]:
        """Document ids of the selected units in first-seen order."""
        seen: List[str] = []
        for unit in self.units:
            if unit.document_id not in seen:
                seen.append(unit.document_id)
        return seen

    @property
    def is_empty(self) -> bool:
        return not self.units
