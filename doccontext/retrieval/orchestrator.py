"""
Retrieval cascade.

Tiers run in order (hybrid, keyword, emergency). A tier that raises demotes
the query to the next tier; there is no way back up within one query. The
emergency tier is terminal, so ``select_context`` always returns a selection.
"""

from typing import List, Optional, Sequence

from doccontext.config import config
from doccontext.embeddings.embedding_generator import DocumentIndexer
from doccontext.embeddings.model_loader import EmbeddingPipeline
from doccontext.monitoring import metrics
from doccontext.retrieval.budget import BudgetSelector, ModelBudgetTable
from doccontext.retrieval.fusion import HybridRanker
from doccontext.retrieval.models import ContextSelection, RetrievalMethod
from doccontext.retrieval.scoring import RelevanceScorer, SemanticScorer
from doccontext.retrieval.strategy import (
    EMERGENCY_WARNING,
    EmergencyStrategy,
    HybridStrategy,
    KeywordStrategy,
    SectionStrategy,
    unique_documents,
)
from doccontext.storage.base import DocumentStore, VectorStore
from doccontext.storage.models import Document
from doccontext.utils.exceptions import NoCandidates
from doccontext.utils.logger import logger
from doccontext.utils.logging_context import trace_context
from doccontext.utils.trace_collector import trace_collector


class RetrievalOrchestrator:
    """Runs the tier cascade for one query at a time.

    Without an embedding pipeline the hybrid tier is left out and queries start
    at the keyword tier.
    """

    def __init__(
        self,
        document_store: DocumentStore,
        vector_store: Optional[VectorStore] = None,
        pipeline: Optional[EmbeddingPipeline] = None,
        indexer: Optional[DocumentIndexer] = None,
        budget_table: Optional[ModelBudgetTable] = None,
        scorer: Optional[RelevanceScorer] = None,
        ranker: Optional[HybridRanker] = None,
        selector: Optional[BudgetSelector] = None,
        tiers: Optional[List[SectionStrategy]] = None,
        emergency: Optional[EmergencyStrategy] = None,
    ):
        self.budget_table = budget_table or ModelBudgetTable()
        selector = selector or BudgetSelector()
        shared = {"scorer": scorer or RelevanceScorer(), "ranker": ranker or HybridRanker(), "selector": selector}

        if tiers is None:
            tiers = []
            if pipeline is not None and vector_store is not None:
                tiers.append(HybridStrategy(
                    document_store,
                    SemanticScorer(pipeline, vector_store),
                    indexer=indexer,
                    **shared,
                ))
            tiers.append(KeywordStrategy(document_store, **shared))
        self.tiers = tiers
        self.emergency = emergency or EmergencyStrategy(selector=selector)

    async def select_context(self, query: str, documents: Sequence[Document], model_id: str) -> ContextSelection:
        """Select context for ``query`` from ``documents`` within the budget of ``model_id``.

        Never raises.
        """
        with trace_context() as trace_id:
            documents = unique_documents(documents or [])
            try:
                selection = await self._run_cascade(query, documents, model_id, trace_id)
            except Exception as e:
                logger.error(f"Context selection failed outside the cascade: {e}")
                trace_collector.record(trace_id, "orchestrator", "selection.failed", {"error": str(e)})
                selection = await self._last_resort(query, documents)
            return selection.model_copy(update={"trace_id": trace_id})

    async def _last_resort(self, query: str, documents: List[Document]) -> ContextSelection:
        # The budget table itself may be what failed.
        budget = int(config.get("budget.default_budget", 32000))
        try:
            return await self.emergency.select(query, documents, budget)
        except Exception as e:
            logger.error(f"Emergency extraction failed after cascade error: {e}")
            return ContextSelection(token_budget=budget, method=RetrievalMethod.EMERGENCY, warning=EMERGENCY_WARNING)

    async def _run_cascade(
        self, query: str, documents: List[Document], model_id: str, trace_id: str
    ) -> ContextSelection:
        logger.info(
            f"Selecting context for {len(documents)} documents (model={model_id})",
            query_length=len(query or ""),
        )

        for tier in self.tiers:
            method = tier.method.value
            budget = self.budget_table.token_budget_for(model_id, tier.method)
            metrics.record(f"cascade.{method}.attempts")
            trace_collector.record(trace_id, "orchestrator", "tier.attempt", {"tier": method, "budget": budget})

            try:
                selection = await tier.select(query, documents, budget)
            except NoCandidates as e:
                logger.info(f"No candidate sections: {e}")
                trace_collector.record(trace_id, "orchestrator", "no_candidates", {"tier": method})
                return ContextSelection(token_budget=budget)
            except Exception as e:
                metrics.record(f"cascade.{method}.failures")
                logger.warning(f"{method} retrieval failed, demoting: {e}")
                trace_collector.record(
                    trace_id,
                    "orchestrator",
                    "tier.demoted",
                    {"tier": method, "error": type(e).__name__, "reason": str(e)},
                )
                continue

            self._record_selection(trace_id, selection)
            return selection

        budget = self.budget_table.token_budget_for(model_id, RetrievalMethod.EMERGENCY)
        metrics.record("cascade.emergency.attempts")
        trace_collector.record(trace_id, "orchestrator", "tier.attempt", {"tier": "emergency", "budget": budget})
        selection = await self.emergency.select(query, documents, budget)
        self._record_selection(trace_id, selection)
        return selection

    def _record_selection(self, trace_id: str, selection: ContextSelection) -> None:
        method = selection.method.value if selection.method else None
        trace_collector.record(
            trace_id,
            "orchestrator",
            "tier.selected",
            {
                "tier": method,
                "units": len(selection.units),
                "total_tokens": selection.total_tokens,
                "token_budget": selection.token_budget,
            },
        )
        logger.info(
            f"Selected {len(selection.units)} units ({selection.total_tokens}/{selection.token_budget} tokens) via {method}"
        )
