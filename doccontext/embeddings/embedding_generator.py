"""Document indexing: chunk, embed and store, reusing records by content hash."""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from doccontext.config import config
from doccontext.embeddings.model_loader import EmbeddingPipeline
from doccontext.ingestion.chunkers import SectionExtractor
from doccontext.monitoring import metrics
from doccontext.storage.base import VectorStore
from doccontext.storage.embedding_store import EmbeddingRecordCache
from doccontext.storage.models import Chunk, Document, EmbeddingRecord
from doccontext.utils.logger import logger
from doccontext.utils.pubsub import ProgressChannel, ProgressEvent


@dataclass
class IndexResult:
    record: Optional[EmbeddingRecord] = None
    chunks: List[Chunk] = field(default_factory=list)
    reused: bool = False


class DocumentIndexer:
    """Embeds documents into a vector store.

    A document whose content hash already has a record under the current
    model version reuses that record's vector and chunk embeddings without a
    single model call. Records from an older model version are dropped and
    recomputed.
    """

    def __init__(
        self,
        pipeline: EmbeddingPipeline,
        vector_store: VectorStore,
        record_cache: Optional[EmbeddingRecordCache] = None,
        extractor: Optional[SectionExtractor] = None,
        progress: Optional[ProgressChannel] = None,
    ):
        self.pipeline = pipeline
        self.vector_store = vector_store
        self.cache = record_cache if record_cache is not None else EmbeddingRecordCache(
            vector_store, max_size=config.get("embeddings.cache_capacity", 512)
        )
        self.extractor = extractor or SectionExtractor()
        self.progress = progress or ProgressChannel()

    @property
    def model_version(self) -> str:
        return self.pipeline.model_version

    def _publish(self, topic: str, document_id: str, current: int = 0, total: int = 0, **details):
        self.progress.publish(ProgressEvent(topic, document_id, current, total, details))

    async def _drop(self, document_id: str) -> None:
        record = await self.vector_store.get_record(document_id)
        await self.vector_store.delete_chunks(document_id)
        await self.vector_store.delete_record(document_id)
        if record is not None:
            self.cache.invalidate(record.content_hash)

    async def _replace_chunks(self, document: Document, chunks: List[Chunk]) -> None:
        # The document may previously have held other content under another hash.
        previous = await self.vector_store.get_record(document.id)
        if previous is not None and previous.content_hash != document.content_hash:
            self.cache.invalidate(previous.content_hash)
        await self.vector_store.delete_chunks(document.id)
        await self.vector_store.save_chunks(chunks)

    async def _find_current(self, content_hash: str) -> Optional[EmbeddingRecord]:
        """Current-version record for ``content_hash``; stale ones found on the way are dropped."""
        record = await self.cache.get_by_hash(content_hash)
        while record is not None and record.model_version != self.model_version:
            logger.info(
                f"Dropping embeddings of {record.document_id}: "
                f"model version {record.model_version} != {self.model_version}"
            )
            metrics.record("embedding.stale_records")
            await self._drop(record.document_id)
            record = await self.cache.get_by_hash(content_hash)
        return record

    async def _reuse(self, document: Document, source: EmbeddingRecord) -> Optional[IndexResult]:
        source_chunks = await self.vector_store.get_chunks(source.document_id)
        if not source_chunks:
            return None

        chunks = [c.rekeyed(document.id, document.name) for c in source_chunks]
        await self._replace_chunks(document, chunks)

        record = EmbeddingRecord(
            document_id=document.id,
            content_hash=document.content_hash,
            model_version=self.model_version,
            vector=list(source.vector),
        )
        await self.cache.put(record)

        metrics.record("embedding.reused_documents")
        logger.info(f"Reused embeddings of {source.document_id} for {document.name}")
        self._publish("indexing.reused", document.id, len(chunks), len(chunks), source=source.document_id)
        return IndexResult(record=record, chunks=chunks, reused=True)

    async def index_document(self, document: Document, chunks: Optional[List[Chunk]] = None) -> IndexResult:
        """Index ``document``; ``chunks`` skips re-chunking when already extracted.

        Raises:
            EmbeddingUnavailable: the model could not be loaded or failed
        """
        if document.is_empty:
            logger.info(f"Skipping indexing of empty document {document.id}")
            return IndexResult()

        self._publish("indexing.started", document.id)

        existing = await self._find_current(document.content_hash)
        if existing is not None:
            reused = await self._reuse(document, existing)
            if reused is not None:
                return reused

        if chunks is None:
            chunks = self.extractor.extract(document).chunks
        total = len(chunks)
        texts = [c.content for c in chunks]
        batch_size = self.pipeline.batch_size

        vectors: List[List[float]] = []
        for start in range(0, total, batch_size):
            vectors.extend(await self.pipeline.embed_batch(texts[start:start + batch_size]))
            self._publish("indexing.chunk", document.id, min(start + batch_size, total), total)

        embedded = [c.model_copy(update={"embedding": v}) for c, v in zip(chunks, vectors)]
        await self._replace_chunks(document, embedded)

        mean = np.mean(np.asarray(vectors, dtype="float32"), axis=0).tolist() if vectors else []
        record = EmbeddingRecord(
            document_id=document.id,
            content_hash=document.content_hash,
            model_version=self.model_version,
            vector=mean,
        )
        await self.cache.put(record)

        logger.info(f"Indexed {document.name}: {total} chunks embedded")
        self._publish("indexing.completed", document.id, total, total)
        return IndexResult(record=record, chunks=embedded, reused=False)

    async def ensure_indexed(self, document: Document) -> Optional[EmbeddingRecord]:
        """Index ``document`` unless it already has a current record."""
        record = await self.vector_store.get_record(document.id)
        if (
            record is not None
            and record.model_version == self.model_version
            and record.content_hash == document.content_hash
        ):
            return record
        return (await self.index_document(document)).record

    async def delete_document(self, document_id: str) -> None:
        await self._drop(document_id)
        logger.info(f"Deleted embeddings for {document_id}")
