"""
ContextEngine - wiring of stores, embedding pipeline and retrieval cascade.

This module has no CLI dependencies and can be imported anywhere (chat
backend, notebooks, tests). For command-line usage see
``doccontext.scripts.select_context``.
"""

from typing import List, Optional, Sequence, Union

from doccontext.embeddings.embedding_generator import DocumentIndexer, IndexResult
from doccontext.embeddings.model_loader import EmbeddingPipeline
from doccontext.ingestion.chunkers import SectionExtractor
from doccontext.retrieval.assembler import build_context_string
from doccontext.retrieval.budget import ModelBudgetTable
from doccontext.retrieval.models import ContextSelection
from doccontext.retrieval.orchestrator import RetrievalOrchestrator
from doccontext.storage.base import DocumentStore, VectorStore
from doccontext.storage.embedding_store import EmbeddingRecordCache
from doccontext.storage.memory_store import InMemoryDocumentStore, InMemoryVectorStore
from doccontext.storage.models import Document, Section
from doccontext.utils.exceptions import EmbeddingUnavailable
from doccontext.utils.logger import logger
from doccontext.utils.pubsub import ProgressChannel


class ContextEngine:
    """
    Ingestion and context selection over one set of stores.

    Example:
        >>> engine = ContextEngine()
        >>> await engine.ingest(Document(id="d1", name="spec.pdf", raw_text=text))
        >>> selection = await engine.select_context("fire rating", ["d1"], "gpt-4o")
        >>> prompt_context = engine.build_context_string(selection)
    """

    def __init__(
        self,
        document_store: Optional[DocumentStore] = None,
        vector_store: Optional[VectorStore] = None,
        pipeline: Optional[EmbeddingPipeline] = None,
        budget_table: Optional[ModelBudgetTable] = None,
        extractor: Optional[SectionExtractor] = None,
        progress: Optional[ProgressChannel] = None,
        keyword_only: bool = False,
    ):
        """
        Args:
            document_store: Section store (in-memory by default)
            vector_store: Chunk and embedding record store (in-memory by default)
            pipeline: Embedding pipeline; a default one is created unless
                ``keyword_only`` is set
            budget_table: Per-model token budgets
            extractor: Section/chunk extractor
            progress: Channel receiving indexing progress events
            keyword_only: Skip embeddings entirely and start at the keyword tier
        """
        self.document_store = document_store or InMemoryDocumentStore()
        self.vector_store = vector_store or InMemoryVectorStore()
        self.extractor = extractor or SectionExtractor()
        self.progress = progress or ProgressChannel()
        self.keyword_only = keyword_only

        self.pipeline = None if keyword_only else (pipeline or EmbeddingPipeline())
        self.indexer = None
        if self.pipeline is not None:
            self.indexer = DocumentIndexer(
                self.pipeline,
                self.vector_store,
                record_cache=EmbeddingRecordCache(self.vector_store),
                extractor=self.extractor,
                progress=self.progress,
            )

        self.orchestrator = RetrievalOrchestrator(
            self.document_store,
            vector_store=self.vector_store,
            pipeline=self.pipeline,
            indexer=self.indexer,
            budget_table=budget_table,
        )

    async def ingest(self, document: Document, sections: Optional[Sequence[Section]] = None) -> List[Section]:
        """Store a document's sections and index its embeddings.

        Embedding failures are logged and leave the document searchable by
        keyword; indexing is retried lazily at query time.
        """
        extraction = self.extractor.extract(document, sections)
        await self.document_store.save_document(document)
        await self.document_store.save_sections(document.id, extraction.sections)

        if self.indexer is not None and extraction.chunks:
            try:
                await self.indexer.index_document(document, extraction.chunks)
            except EmbeddingUnavailable as e:
                logger.warning(f"Embedding {document.name} failed; keyword retrieval only for now: {e}")

        logger.info(f"Ingested {document.name}: {len(extraction.sections)} sections")
        return extraction.sections

    async def index(self, document: Document) -> Optional[IndexResult]:
        if self.indexer is None:
            return None
        return await self.indexer.index_document(document)

    async def delete_document(self, document_id: str) -> None:
        await self.document_store.delete_document(document_id)
        if self.indexer is not None:
            await self.indexer.delete_document(document_id)

    async def _resolve(self, documents: Sequence[Union[Document, str]]) -> List[Document]:
        resolved = []
        for item in documents:
            if isinstance(item, Document):
                resolved.append(item)
                continue
            document = await self.document_store.get_document(item)
            if document is None:
                logger.warning(f"Unknown document id {item}; skipping")
                continue
            resolved.append(document)
        return resolved

    async def select_context(
        self, query: str, documents: Sequence[Union[Document, str]], model_id: str
    ) -> ContextSelection:
        """Select context from documents (or their ids). Never raises."""
        try:
            resolved = await self._resolve(documents)
        except Exception as e:
            # Ids cannot be resolved without the store; emergency needs the text.
            logger.warning(f"Could not resolve documents: {e}")
            resolved = [d for d in documents if isinstance(d, Document)]
        return await self.orchestrator.select_context(query, resolved, model_id)

    @staticmethod
    def build_context_string(selection: ContextSelection) -> str:
        return build_context_string(selection)
