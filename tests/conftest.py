import hashlib
import re
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).parent.parent.resolve()
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from doccontext.embeddings.model_loader import EmbeddingPipeline  # noqa: E402
from doccontext.monitoring import metrics  # noqa: E402
from doccontext.storage.memory_store import InMemoryDocumentStore, InMemoryVectorStore  # noqa: E402
from doccontext.storage.models import Document, Section  # noqa: E402
from doccontext.utils.exceptions import StorageUnavailable  # noqa: E402

FAKE_DIM = 32


class FakeEmbeddingModel:
    """Deterministic bag-of-words embedder standing in for SentenceTransformer."""

    def __init__(self, dim: int = FAKE_DIM):
        self.dim = dim
        self.encode_calls = 0
        self.encoded_texts = []
        self._lock = threading.Lock()

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dim, dtype="float32")
        for word in re.findall(r"\w+", text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self.dim
            vec[bucket] += 1.0
        norm = np.linalg.norm(vec)
        if norm == 0:
            vec[0] = 1.0
            return vec
        return vec / norm

    def encode(self, texts, **kwargs):
        with self._lock:
            self.encode_calls += 1
            self.encoded_texts.extend(texts)
        return np.stack([self._vector(t) for t in texts])


class FakeLoader:
    """Callable passed to EmbeddingPipeline(loader=...); counts loads."""

    def __init__(self, model=None, error: Exception = None):
        self.model = model or FakeEmbeddingModel()
        self.error = error
        self.calls = 0

    def __call__(self, model_name, device):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.model


class FailingDocumentStore:
    """Document store whose every call fails as if the backend were down."""

    async def get_document(self, document_id):
        raise StorageUnavailable("documents", "get_document")

    async def get_sections_by_document(self, document_id):
        raise StorageUnavailable("documents", "get_sections_by_document")

    async def save_document(self, document):
        raise StorageUnavailable("documents", "save_document")

    async def save_sections(self, document_id, sections):
        raise StorageUnavailable("documents", "save_sections")

    async def delete_document(self, document_id):
        raise StorageUnavailable("documents", "delete_document")


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset_metrics()
    yield
    metrics.reset_metrics()


@pytest.fixture
def fake_model():
    return FakeEmbeddingModel()


@pytest.fixture
def fake_loader(fake_model):
    return FakeLoader(fake_model)


@pytest.fixture
def pipeline(fake_loader):
    return EmbeddingPipeline(model_name="fake-model", device="cpu", loader=fake_loader)


@pytest.fixture
def broken_pipeline():
    return EmbeddingPipeline(
        model_name="fake-model", device="cpu", loader=FakeLoader(error=OSError("weights missing"))
    )


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def make_document():
    def _make(doc_id="doc1", name=None, text="Door schedule and fire rating details."):
        return Document(id=doc_id, name=name or f"{doc_id}.txt", raw_text=text)

    return _make


@pytest.fixture
def make_section():
    def _make(document_id="doc1", position=0, title="Section", content="text", page_number=1, section_id=None):
        return Section(
            id=section_id or f"{document_id}_section_{position}",
            document_id=document_id,
            title=title,
            content=content,
            page_number=page_number,
            position=position,
        )

    return _make
