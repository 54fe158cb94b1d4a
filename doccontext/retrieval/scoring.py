"""
Relevance scoring for sections.

Keyword scoring is a pure function of the query and a section. Semantic
scoring ranks the chunks of the requested documents against the query and
collapses the ranking to one score per document.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from doccontext.config import config
from doccontext.embeddings.model_loader import EmbeddingPipeline
from doccontext.retrieval.models import ScoredUnit
from doccontext.storage.base import VectorStore
from doccontext.storage.models import Section
from doccontext.utils.logger import logger
from doccontext.utils.utils import Utils

Candidate = Tuple[Section, str]


class KeywordScorer:
    """Title and body term matching with a domain keyword boost."""

    def __init__(
        self,
        domain_keywords: Optional[Sequence[str]] = None,
        title_match_bonus: Optional[float] = None,
        title_term_bonus: Optional[float] = None,
        body_occurrence_bonus: Optional[float] = None,
        domain_keyword_bonus: Optional[float] = None,
        min_term_length: Optional[int] = None,
    ):
        def _cfg(value, key):
            return value if value is not None else config.get(f"retrieval.{key}")

        keywords = domain_keywords if domain_keywords is not None else config.get("retrieval.domain_keywords", [])
        self.domain_keywords = [k.lower() for k in keywords]
        self.title_match_bonus = _cfg(title_match_bonus, "title_match_bonus")
        self.title_term_bonus = _cfg(title_term_bonus, "title_term_bonus")
        self.body_occurrence_bonus = _cfg(body_occurrence_bonus, "body_occurrence_bonus")
        self.domain_keyword_bonus = _cfg(domain_keyword_bonus, "domain_keyword_bonus")
        self.min_term_length = _cfg(min_term_length, "min_term_length")

    def score(self, query: str, section: Section) -> float:
        query_lower = Utils.normalize_query(query)
        title = (section.title or "").lower()
        body = (section.content or "").lower()

        score = 0.0
        if query_lower and query_lower in title:
            score += self.title_match_bonus

        for term in Utils.query_terms(query_lower, self.min_term_length):
            if term in title:
                score += self.title_term_bonus
            score += self.body_occurrence_bonus * Utils.count_occurrences(body, term)

        for keyword in self.domain_keywords:
            if keyword in query_lower and keyword in title:
                score += self.domain_keyword_bonus

        return score


class SemanticScorer:
    """Document-level semantic scores from a chunk similarity search."""

    def __init__(self, pipeline: EmbeddingPipeline, vector_store: VectorStore, top_k: Optional[int] = None):
        self.pipeline = pipeline
        self.vector_store = vector_store
        self.top_k = top_k or config.get("embeddings.search_top_k", 50)

    async def document_scores(self, query: str, document_ids: Sequence[str]) -> Dict[str, float]:
        """Map each requested document to ``max(1 - rank/total)`` over its chunks.

        Documents without a chunk in the result list score 0.0.

        Raises:
            EmbeddingUnavailable: the query could not be embedded
            StorageUnavailable: the vector store could not be searched
        """
        query_vector = await self.pipeline.embed(query)
        results = await self.vector_store.search(query_vector, list(document_ids), self.top_k)

        scores = {doc_id: 0.0 for doc_id in document_ids}
        total = len(results)
        for rank, (chunk, _similarity) in enumerate(results):
            rank_score = 1.0 - rank / total
            if rank_score > scores.get(chunk.document_id, 0.0):
                scores[chunk.document_id] = rank_score

        logger.debug(f"Semantic search returned {total} chunks across {len(document_ids)} documents")
        return scores


class RelevanceScorer:
    """Attaches keyword and (when available) semantic scores to candidates."""

    def __init__(self, keyword_scorer: Optional[KeywordScorer] = None):
        self.keyword_scorer = keyword_scorer or KeywordScorer()

    def score_units(
        self,
        query: str,
        candidates: Sequence[Candidate],
        semantic_scores: Optional[Dict[str, float]] = None,
    ) -> List[ScoredUnit]:
        return [
            ScoredUnit(
                section=section,
                document_name=document_name,
                keyword=self.keyword_scorer.score(query, section),
                semantic=(
                    semantic_scores.get(section.document_id, 0.0)
                    if semantic_scores is not None
                    else None
                ),
            )
            for section, document_name in candidates
        ]
