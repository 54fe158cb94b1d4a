"""
Retrieval tiers.

Each tier turns ``(query, documents, token_budget)`` into a
``ContextSelection``. The section-based tiers raise on failure so the
orchestrator can demote; the emergency tier never raises.
"""

import re
from itertools import islice
from typing import List, Optional, Sequence, Tuple

from doccontext.config import config
from doccontext.embeddings.embedding_generator import DocumentIndexer
from doccontext.retrieval.budget import BudgetSelector
from doccontext.retrieval.fusion import HybridRanker
from doccontext.retrieval.models import (
    ContextSelection,
    EmergencyScore,
    RetrievalMethod,
    SelectedUnit,
)
from doccontext.retrieval.scoring import Candidate, RelevanceScorer, SemanticScorer
from doccontext.storage.base import DocumentStore
from doccontext.storage.models import Document, Section
from doccontext.utils.exceptions import NoCandidates
from doccontext.utils.logger import logger
from doccontext.utils.utils import Utils

EMERGENCY_WARNING = (
    "Using emergency text extraction; semantic and keyword retrieval were unavailable."
)


def unique_documents(documents: Sequence[Document]) -> List[Document]:
    """Drop repeated document ids, keeping first-seen order."""
    seen = set()
    unique = []
    for document in documents:
        if document.id in seen:
            continue
        seen.add(document.id)
        unique.append(document)
    return unique


class SectionStrategy:
    """Shared candidate gathering for the tiers that rank stored sections."""

    method: RetrievalMethod

    def __init__(
        self,
        document_store: DocumentStore,
        scorer: Optional[RelevanceScorer] = None,
        ranker: Optional[HybridRanker] = None,
        selector: Optional[BudgetSelector] = None,
    ):
        self.document_store = document_store
        self.scorer = scorer or RelevanceScorer()
        self.ranker = ranker or HybridRanker()
        self.selector = selector or BudgetSelector()

    async def gather_candidates(self, documents: Sequence[Document]) -> List[Candidate]:
        """Sections of every document, in request order then extraction order.

        A non-empty document without stored sections contributes one section
        spanning its whole text.

        Raises:
            NoCandidates: no document yields any section
        """
        candidates: List[Candidate] = []
        for document in documents:
            sections = await self.document_store.get_sections_by_document(document.id)
            sections = [s for s in sections if s.content and s.content.strip()]
            if not sections and not document.is_empty:
                sections = [Section(
                    id=f"{document.id}_section_0",
                    document_id=document.id,
                    title=document.name,
                    content=document.raw_text,
                    page_number=1,
                    position=0,
                )]
            candidates.extend((section, document.name) for section in sections)

        if not candidates:
            raise NoCandidates([d.id for d in documents])
        return candidates

    async def select(self, query: str, documents: Sequence[Document], token_budget: int) -> ContextSelection:
        raise NotImplementedError()


class HybridStrategy(SectionStrategy):
    """Semantic document scores combined with keyword section scores."""

    method = RetrievalMethod.HYBRID

    def __init__(
        self,
        document_store: DocumentStore,
        semantic_scorer: SemanticScorer,
        indexer: Optional[DocumentIndexer] = None,
        **kwargs,
    ):
        super().__init__(document_store, **kwargs)
        self.semantic_scorer = semantic_scorer
        self.indexer = indexer

    async def select(self, query: str, documents: Sequence[Document], token_budget: int) -> ContextSelection:
        candidates = await self.gather_candidates(documents)

        if self.indexer is not None:
            for document in documents:
                await self.indexer.ensure_indexed(document)

        semantic_scores = await self.semantic_scorer.document_scores(query, [d.id for d in documents])
        scored = self.scorer.score_units(query, candidates, semantic_scores)
        ranked = self.ranker.rank(scored)
        return self.selector.select(ranked, token_budget, self.method)


class KeywordStrategy(SectionStrategy):
    """Keyword scores only; needs the section store but not the model."""

    method = RetrievalMethod.KEYWORD

    async def select(self, query: str, documents: Sequence[Document], token_budget: int) -> ContextSelection:
        candidates = await self.gather_candidates(documents)
        scored = self.scorer.score_units(query, candidates)
        ranked = self.ranker.rank(scored)
        return self.selector.select(ranked, token_budget, self.method)


class EmergencyStrategy:
    """Substring windows around query terms, read straight from document text.

    Uses neither the model nor any store, and never raises.
    """

    method = RetrievalMethod.EMERGENCY

    def __init__(
        self,
        context_chars: Optional[int] = None,
        max_windows_per_term: Optional[int] = None,
        fallback_chars: Optional[int] = None,
        separator: Optional[str] = None,
        selector: Optional[BudgetSelector] = None,
    ):
        def _cfg(value, key):
            return value if value is not None else config.get(f"emergency.{key}")

        self.context_chars = _cfg(context_chars, "context_chars")
        self.max_windows_per_term = _cfg(max_windows_per_term, "max_windows_per_term")
        self.fallback_chars = _cfg(fallback_chars, "fallback_chars")
        self.separator = _cfg(separator, "separator")
        self.selector = selector or BudgetSelector()

    def windows(self, text: str, terms: Sequence[str]) -> Tuple[List[str], int]:
        """Excerpts of ``text`` around each term match and the number of matches used."""
        excerpts: List[str] = []
        matches = 0
        for term in terms:
            pattern = re.compile(re.escape(term), re.IGNORECASE)
            for match in islice(pattern.finditer(text), self.max_windows_per_term):
                start = max(0, match.start() - self.context_chars)
                end = min(len(text), match.end() + self.context_chars)
                excerpt = text[start:end].strip()
                matches += 1
                if excerpt and excerpt not in excerpts:
                    excerpts.append(excerpt)
        return excerpts, matches

    def _unit(self, document: Document, title: str, text: str, matches: int, remaining: int) -> SelectedUnit:
        tokens = Utils.estimate_tokens(text)
        truncated = tokens > remaining
        if truncated:
            text = text[: Utils.chars_for_tokens(remaining)]
            tokens = Utils.estimate_tokens(text)
        return SelectedUnit(
            document_id=document.id,
            document_name=document.name,
            section_id=f"{document.id}_emergency",
            title=title,
            content=text,
            page_number=None,
            position=0,
            token_count=tokens,
            truncated=truncated,
            score=EmergencyScore(matches=matches),
        )

    def _extract(self, query: str, documents: Sequence[Document], token_budget: int) -> ContextSelection:
        documents = unique_documents(documents)
        terms = Utils.query_terms(query)
        units: List[SelectedUnit] = []
        total = 0

        for document in documents:
            if total >= token_budget:
                break
            if document.is_empty:
                continue
            excerpts, matches = self.windows(document.raw_text, terms)
            if not excerpts:
                continue
            unit = self._unit(
                document, "Matching excerpts", self.separator.join(excerpts), matches, token_budget - total
            )
            units.append(unit)
            total += unit.token_count

        if not units and token_budget > 0:
            first = next((d for d in documents if not d.is_empty), None)
            if first is not None:
                head = first.raw_text[: self.fallback_chars].strip()
                unit = self._unit(first, "Beginning of document", head, 0, token_budget)
                units.append(unit)
                total = unit.token_count

        warning = EMERGENCY_WARNING
        large = self.selector.warning_for(total, token_budget)
        if large:
            warning = f"{warning} {large}"

        return ContextSelection(
            units=units,
            total_tokens=total,
            token_budget=token_budget,
            method=self.method,
            warning=warning,
        )

    async def select(self, query: str, documents: Sequence[Document], token_budget: int) -> ContextSelection:
        try:
            return self._extract(query, documents, token_budget)
        except Exception as e:
            logger.error(f"Emergency extraction failed: {e}")
            return ContextSelection(
                token_budget=max(token_budget, 0),
                method=self.method,
                warning=EMERGENCY_WARNING,
            )


__all__ = [
    "EMERGENCY_WARNING",
    "EmergencyStrategy",
    "HybridStrategy",
    "KeywordStrategy",
    "SectionStrategy",
    "unique_documents",
]
