"""
Tests for EmbeddingPipeline: lazy single-flight loading, truncation and failure handling.
"""

import asyncio
import time
from unittest.mock import patch

import numpy as np
import pytest

from conftest import FakeEmbeddingModel, FakeLoader
from doccontext.embeddings.model_loader import EmbeddingPipeline
from doccontext.monitoring import metrics
from doccontext.utils.exceptions import EmbeddingUnavailable


class SlowLoader(FakeLoader):
    def __call__(self, model_name, device):
        time.sleep(0.05)
        return super().__call__(model_name, device)


@pytest.mark.asyncio
async def test_model_not_loaded_until_first_use(pipeline, fake_loader):
    assert not pipeline.is_ready()
    assert fake_loader.calls == 0

    await pipeline.embed("door schedule")

    assert pipeline.is_ready()
    assert fake_loader.calls == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_load():
    loader = SlowLoader()
    pipeline = EmbeddingPipeline(model_name="fake-model", device="cpu", loader=loader)

    models = await asyncio.gather(*(pipeline.load_model() for _ in range(8)))

    assert loader.calls == 1
    assert all(m is loader.model for m in models)
    assert metrics.get("embedding.model_loads") == 1


@pytest.mark.asyncio
async def test_sentence_transformer_constructed_once():
    with patch("doccontext.embeddings.model_loader.SentenceTransformer") as mock_transformer:
        mock_transformer.return_value = FakeEmbeddingModel()
        pipeline = EmbeddingPipeline(model_name="test-model", device="cpu")

        await asyncio.gather(pipeline.embed("a"), pipeline.embed("b"), pipeline.embed("c"))

        mock_transformer.assert_called_once_with("test-model", device="cpu")


@pytest.mark.asyncio
async def test_failed_load_raises_for_every_waiter_and_can_be_retried():
    loader = FakeLoader(error=OSError("weights missing"))
    pipeline = EmbeddingPipeline(model_name="fake-model", device="cpu", loader=loader)

    results = await asyncio.gather(
        pipeline.load_model(), pipeline.load_model(), return_exceptions=True
    )
    assert all(isinstance(r, EmbeddingUnavailable) for r in results)
    assert loader.calls == 1
    assert not pipeline.is_ready()

    # A later call gets a fresh attempt.
    loader.error = None
    await pipeline.load_model()
    assert loader.calls == 2
    assert pipeline.is_ready()


@pytest.mark.asyncio
async def test_inference_failure_raises_embedding_unavailable():
    class BrokenModel:
        def encode(self, texts, **kwargs):
            raise RuntimeError("CUDA error")

    pipeline = EmbeddingPipeline(model_name="fake-model", device="cpu", loader=FakeLoader(BrokenModel()))

    with pytest.raises(EmbeddingUnavailable):
        await pipeline.embed("query")


@pytest.mark.asyncio
async def test_inputs_truncated_and_vectors_normalized(pipeline, fake_model):
    long_text = "word " * 1000
    vectors = await pipeline.embed_batch([long_text, "short"])

    assert len(vectors) == 2
    assert len(fake_model.encoded_texts[0]) == 2000
    assert fake_model.encoded_texts[1] == "short"
    for v in vectors:
        assert np.isclose(np.linalg.norm(v), 1.0, atol=1e-5)
    assert metrics.get("embedding.calls") == 1
    assert metrics.get("embedding.texts") == 2


@pytest.mark.asyncio
async def test_empty_batch_does_not_load_model(pipeline, fake_loader):
    assert await pipeline.embed_batch([]) == []
    assert fake_loader.calls == 0


@pytest.mark.asyncio
async def test_unload_forces_reload(pipeline, fake_loader):
    await pipeline.load_model()
    pipeline.unload()
    assert not pipeline.is_ready()

    await pipeline.load_model()
    assert fake_loader.calls == 2
