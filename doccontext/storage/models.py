"""
Stored entities.

Documents are created by the upstream parser and never mutated; sections,
chunks and embedding records are written once at ingestion and read-only
during retrieval.
"""

import time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from doccontext.utils.utils import Utils


class Document(BaseModel):
    """A parsed document. ``content_hash`` is the dedup key for embeddings."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Document identifier")
    name: str = Field(description="Display name, usually the file name")
    raw_text: str = Field(default="", description="Extracted text")
    content_hash: str = Field(default="", description="SHA-256 of raw_text")

    @model_validator(mode="before")
    @classmethod
    def _fill_content_hash(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("content_hash"):
            data = dict(data)
            data["content_hash"] = Utils.content_hash(data.get("raw_text") or "")
        return data

    @computed_field
    @property
    def token_count(self) -> int:
        return Utils.estimate_tokens(self.raw_text)

    @property
    def is_empty(self) -> bool:
        return not self.raw_text.strip()


class Section(BaseModel):
    """A structural excerpt (page, heading block, sheet); the unit of selection."""

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    title: str = ""
    content: str = ""
    page_number: Optional[int] = None
    position: int = Field(default=0, description="Extraction order within the document")

    @computed_field
    @property
    def token_count(self) -> int:
        return Utils.estimate_tokens(self.content)


class Chunk(BaseModel):
    """A fixed-size overlapping window used only for semantic similarity."""

    id: str
    document_id: str
    document_name: str = ""
    chunk_index: int
    content: str
    embedding: List[float] = Field(default_factory=list)

    @computed_field
    @property
    def token_count(self) -> int:
        return Utils.estimate_tokens(self.content)

    @staticmethod
    def make_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}_chunk_{chunk_index}"

    def rekeyed(self, document_id: str, document_name: str) -> "Chunk":
        """Copy of this chunk owned by another document (same content and vector)."""
        return self.model_copy(
            update={
                "id": Chunk.make_id(document_id, self.chunk_index),
                "document_id": document_id,
                "document_name": document_name,
            }
        )


class EmbeddingRecord(BaseModel):
    """Document-level vector (mean of its chunk vectors), keyed by content hash."""

    document_id: str
    content_hash: str
    model_version: str
    vector: List[float] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time)
