"""Store interfaces consumed by the retrieval engine.

Persistence lives outside this package; any backend that implements these
async protocols can be injected. Backends signal an unreachable store by
raising ``StorageUnavailable``.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, Tuple

from doccontext.storage.models import Chunk, Document, EmbeddingRecord, Section


class DocumentStore(Protocol):
    async def get_document(self, document_id: str) -> Optional[Document]:
        ...

    async def get_sections_by_document(self, document_id: str) -> List[Section]:
        ...

    async def save_document(self, document: Document) -> None:
        ...

    async def save_sections(self, document_id: str, sections: Sequence[Section]) -> None:
        ...

    async def delete_document(self, document_id: str) -> None:
        ...


class VectorStore(Protocol):
    async def save_chunks(self, chunks: Sequence[Chunk]) -> None:
        ...

    async def get_chunks(self, document_id: str) -> List[Chunk]:
        ...

    async def delete_chunks(self, document_id: str) -> None:
        ...

    async def save_record(self, record: EmbeddingRecord) -> None:
        ...

    async def get_record(self, document_id: str) -> Optional[EmbeddingRecord]:
        ...

    async def get_record_by_hash(self, content_hash: str) -> Optional[EmbeddingRecord]:
        ...

    async def delete_record(self, document_id: str) -> None:
        ...

    async def search(
        self, query_vector: Sequence[float], document_ids: Sequence[str], top_k: int
    ) -> List[Tuple[Chunk, float]]:
        ...
