"""
Hybrid ranking: max-normalized semantic and keyword scores, linearly combined.
"""

from typing import List, Optional, Sequence

from doccontext.config.settings import settings
from doccontext.retrieval.models import HybridScore, KeywordScore, RankedUnit, ScoredUnit


def _normalize(value: float, maximum: float) -> float:
    return value / maximum if maximum > 0 else 0.0


class HybridRanker:
    def __init__(self, semantic_weight: Optional[float] = None, keyword_weight: Optional[float] = None):
        self.semantic_weight = (
            semantic_weight if semantic_weight is not None else settings.retrieval.semantic_weight
        )
        self.keyword_weight = (
            keyword_weight if keyword_weight is not None else settings.retrieval.keyword_weight
        )

    def rank(self, units: Sequence[ScoredUnit]) -> List[RankedUnit]:
        """Order units best-first.

        With semantic scores present, score = w_s * sem/max_sem + w_k * kw/max_kw
        (a zero maximum normalizes to 0). Without them, order by raw keyword
        score. Sorting is stable, so ties keep extraction order.
        """
        if any(u.semantic is not None for u in units):
            max_keyword = max((u.keyword for u in units), default=0.0)
            max_semantic = max((u.semantic or 0.0 for u in units), default=0.0)
            ranked = []
            for u in units:
                keyword = _normalize(u.keyword, max_keyword)
                semantic = _normalize(u.semantic or 0.0, max_semantic)
                ranked.append(RankedUnit(
                    section=u.section,
                    document_name=u.document_name,
                    score=HybridScore(
                        keyword=keyword,
                        semantic=semantic,
                        combined=self.semantic_weight * semantic + self.keyword_weight * keyword,
                    ),
                ))
        else:
            ranked = [
                RankedUnit(section=u.section, document_name=u.document_name, score=KeywordScore(keyword=u.keyword))
                for u in units
            ]

        ranked.sort(key=lambda r: r.score.value, reverse=True)
        return ranked
