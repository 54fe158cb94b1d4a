from doccontext.storage.base import DocumentStore, VectorStore
from doccontext.storage.embedding_store import EmbeddingRecordCache
from doccontext.storage.memory_store import InMemoryDocumentStore, InMemoryVectorStore
from doccontext.storage.models import Chunk, Document, EmbeddingRecord, Section

__all__ = [
    "Chunk",
    "Document",
    "DocumentStore",
    "EmbeddingRecord",
    "EmbeddingRecordCache",
    "InMemoryDocumentStore",
    "InMemoryVectorStore",
    "Section",
    "VectorStore",
]
