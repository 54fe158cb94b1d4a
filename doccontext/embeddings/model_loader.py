"""
Lazy, single-flight embedding model pipeline.

The model is loaded on first use. Concurrent callers that arrive while a load
is in flight await the same load instead of starting their own; a failed load
is reported to every waiter and the next call starts a fresh attempt.
"""

import asyncio
import time
from typing import Any, Callable, List, Optional

import numpy as np
import torch
from sentence_transformers import SentenceTransformer

from doccontext.config import config
from doccontext.monitoring import metrics
from doccontext.utils.exceptions import EmbeddingUnavailable
from doccontext.utils.logger import logger

MODEL_VERSION = config.get("embeddings.model_version", "minilm-l6-v2-paragraph-windows")

ModelLoader = Callable[[str, str], Any]


def _load_sentence_transformer(model_name: str, device: str) -> SentenceTransformer:
    return SentenceTransformer(model_name, device=device)


class EmbeddingPipeline:
    """Async facade over a SentenceTransformer model.

    All blocking work (loading and encoding) runs in a worker thread so the
    event loop stays responsive.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: Optional[int] = None,
        max_input_chars: Optional[int] = None,
        loader: Optional[ModelLoader] = None,
        model_version: Optional[str] = None,
    ):
        """Initialize the pipeline without loading anything.

        Args:
            model_name: sentence-transformers model id or path (defaults to config)
            device: 'cuda' or 'cpu'; auto-detected on first load if None
            batch_size: Encoding batch size
            max_input_chars: Each input is truncated to this many characters
            loader: Callable ``(model_name, device) -> model`` used instead of
                SentenceTransformer, mainly for tests
            model_version: Identifier stamped on embedding records
        """
        self.model_name = model_name or config.get("embeddings.model_name")
        self.device = device or config.get("embeddings.device")
        self.batch_size = batch_size or config.get("embeddings.batch_size", 32)
        self.max_input_chars = max_input_chars or config.get("embeddings.max_input_chars", 2000)
        self.model_version = model_version or MODEL_VERSION
        self._loader = loader or _load_sentence_transformer

        self._model = None
        self._load_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    def _detect_device(self) -> str:
        """Detect available device (CUDA GPU or CPU)."""
        if torch.cuda.is_available():
            logger.info(f"CUDA available. Using GPU: {torch.cuda.get_device_name(0)}")
            return "cuda"
        logger.info("CUDA not available. Using CPU.")
        return "cpu"

    def is_ready(self) -> bool:
        return self._model is not None

    async def _load(self):
        start_time = time.time()
        device = self.device or self._detect_device()
        logger.info(f"Loading embedding model {self.model_name} on {device}...")
        try:
            model = await asyncio.to_thread(self._loader, self.model_name, device)
        except Exception as e:
            self._load_task = None
            metrics.record("embedding.load_failures")
            logger.error(f"Failed to load embedding model {self.model_name}: {e}")
            raise EmbeddingUnavailable(self.model_name, f"load failed: {e}") from e

        self._model = model
        self.device = device
        metrics.record("embedding.model_loads")
        logger.info(f"Model loaded successfully in {time.time() - start_time:.2f}s on {device}")
        return model

    async def load_model(self):
        """Return the loaded model, loading it at most once across concurrent callers.

        Raises:
            EmbeddingUnavailable: the load failed
        """
        if self._model is not None:
            return self._model

        async with self._lock:
            if self._model is not None:
                return self._model
            if self._load_task is None:
                self._load_task = asyncio.ensure_future(self._load())
            task = self._load_task

        # Shielded so a cancelled waiter does not abort the shared load.
        return await asyncio.shield(task)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed ``texts`` as normalized vectors, one per input, in order."""
        if not texts:
            return []
        model = await self.load_model()
        prepared = [(t or "")[: self.max_input_chars] for t in texts]

        try:
            with metrics.timed("embedding.encode_ms"):
                vectors = await asyncio.to_thread(
                    model.encode,
                    prepared,
                    batch_size=self.batch_size,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                    convert_to_numpy=True,
                )
        except Exception as e:
            logger.warning(f"Embedding inference failed for {len(prepared)} texts: {e}")
            raise EmbeddingUnavailable(self.model_name, f"inference failed: {e}") from e

        metrics.record("embedding.calls")
        metrics.record("embedding.texts", len(prepared))
        return [np.asarray(v, dtype="float32").tolist() for v in vectors]

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    def unload(self) -> None:
        """Drop the model reference; the next call loads it again."""
        if self._model is None:
            return
        self._model = None
        self._load_task = None
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
        logger.info("Embedding model unloaded")


_pipeline: Optional[EmbeddingPipeline] = None


def get_embedding_pipeline() -> EmbeddingPipeline:
    """Process-wide default pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = EmbeddingPipeline()
    return _pipeline
