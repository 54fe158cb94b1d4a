"""
In-memory document and vector stores.

Used as the default backend and in tests. Both expose the async protocols from
``doccontext.storage.base``.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from doccontext.storage.models import Chunk, Document, EmbeddingRecord, Section
from doccontext.utils.logger import logger


class InMemoryDocumentStore:
    """Documents and their ordered sections, keyed by document id."""

    def __init__(self):
        self._documents: Dict[str, Document] = {}
        self._sections: Dict[str, List[Section]] = {}

    async def get_document(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    async def get_sections_by_document(self, document_id: str) -> List[Section]:
        return sorted(self._sections.get(document_id, []), key=lambda s: s.position)

    async def save_document(self, document: Document) -> None:
        self._documents[document.id] = document

    async def save_sections(self, document_id: str, sections: Sequence[Section]) -> None:
        self._sections[document_id] = list(sections)

    async def delete_document(self, document_id: str) -> None:
        """Remove a document; its sections go with it."""
        self._documents.pop(document_id, None)
        self._sections.pop(document_id, None)

    def count(self) -> int:
        return len(self._documents)


class InMemoryVectorStore:
    """Chunks with embeddings plus one embedding record per document.

    Similarity search is a brute-force cosine scan over the chunks of the
    requested documents.
    """

    def __init__(self):
        self._chunks: Dict[str, List[Chunk]] = {}
        self._records: Dict[str, EmbeddingRecord] = {}

    async def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        for chunk in chunks:
            bucket = self._chunks.setdefault(chunk.document_id, [])
            bucket[:] = [c for c in bucket if c.id != chunk.id]
            bucket.append(chunk)
        for bucket in self._chunks.values():
            bucket.sort(key=lambda c: c.chunk_index)

    async def get_chunks(self, document_id: str) -> List[Chunk]:
        return list(self._chunks.get(document_id, []))

    async def delete_chunks(self, document_id: str) -> None:
        self._chunks.pop(document_id, None)

    async def save_record(self, record: EmbeddingRecord) -> None:
        self._records[record.document_id] = record

    async def get_record(self, document_id: str) -> Optional[EmbeddingRecord]:
        return self._records.get(document_id)

    async def get_record_by_hash(self, content_hash: str) -> Optional[EmbeddingRecord]:
        # Oldest record wins so reuse always points at the original source.
        matches = [r for r in self._records.values() if r.content_hash == content_hash]
        if not matches:
            return None
        return min(matches, key=lambda r: r.timestamp)

    async def delete_record(self, document_id: str) -> None:
        self._records.pop(document_id, None)

    async def search(
        self, query_vector: Sequence[float], document_ids: Sequence[str], top_k: int
    ) -> List[Tuple[Chunk, float]]:
        candidates = [
            chunk
            for doc_id in document_ids
            for chunk in self._chunks.get(doc_id, [])
            if chunk.embedding
        ]
        if not candidates:
            return []

        q = np.asarray(query_vector, dtype="float32")
        matrix = np.asarray([c.embedding for c in candidates], dtype="float32")
        if matrix.shape[1] != q.shape[0]:
            logger.warning(
                f"Embedding dimension mismatch: query={q.shape[0]} chunks={matrix.shape[1]}"
            )
            return []

        denom = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        sims = np.divide(matrix @ q, denom, out=np.zeros(len(candidates), dtype="float32"), where=denom > 0)

        # Stable so equal similarities keep document/chunk order.
        order = np.argsort(-sims, kind="stable")[:top_k]
        return [(candidates[i], float(sims[i])) for i in order]

    def count(self) -> int:
        return sum(len(v) for v in self._chunks.values())
