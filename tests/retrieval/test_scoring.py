from unittest.mock import AsyncMock, MagicMock

import pytest

from doccontext.retrieval.scoring import KeywordScorer, RelevanceScorer, SemanticScorer
from doccontext.storage.memory_store import InMemoryVectorStore
from doccontext.storage.models import Chunk


class TestKeywordScorer:
    def test_title_body_and_domain_bonuses(self, make_section):
        section = make_section(title="Door Schedule", content="door door schedule")
        # 100 (query in title) + 20+2*3 (door) + 20+1*3 (schedule) + 30 (door) + 30 (schedule)
        assert KeywordScorer().score("Door  Schedule", section) == 209

    def test_short_terms_ignored(self, make_section):
        section = make_section(title="Notes", content="a of to fire")
        assert KeywordScorer().score("a of fire", section) == 3

    def test_body_occurrences_do_not_overlap(self, make_section):
        section = make_section(title="x", content="ababa")
        assert KeywordScorer(domain_keywords=[]).score("aba", section) == 3

    def test_domain_keyword_needs_query_and_title(self, make_section):
        scorer = KeywordScorer(domain_keywords=["fire rating"])
        in_both = make_section(title="FIRE RATING", content="")
        title_only = make_section(title="FIRE RATING", content="")

        assert scorer.score("fire rating door", in_both) == 20 + 20 + 30
        assert scorer.score("acoustic", title_only) == 0

    def test_unrelated_section_scores_zero(self, make_section):
        section = make_section(title="GENERAL NOTES", content="All work to comply with local codes.")
        assert KeywordScorer().score("fire rating door schedule", section) == 0


def _chunk(doc_id, index, vector):
    return Chunk(id=Chunk.make_id(doc_id, index), document_id=doc_id, chunk_index=index, content="c", embedding=vector)


@pytest.mark.asyncio
async def test_semantic_scores_are_rank_based_per_document():
    store = InMemoryVectorStore()
    await store.save_chunks([
        _chunk("a", 0, [1.0, 0.0]),
        _chunk("b", 0, [0.9, 0.1]),
        _chunk("b", 1, [0.0, 1.0]),
    ])
    pipeline = MagicMock()
    pipeline.embed = AsyncMock(return_value=[1.0, 0.0])

    scores = await SemanticScorer(pipeline, store, top_k=50).document_scores("q", ["a", "b", "c"])

    assert scores["a"] == pytest.approx(1.0)
    assert scores["b"] == pytest.approx(1 - 1 / 3)
    assert scores["c"] == 0.0


@pytest.mark.asyncio
async def test_semantic_scorer_propagates_embedding_failure(broken_pipeline, vector_store):
    from doccontext.utils.exceptions import EmbeddingUnavailable

    with pytest.raises(EmbeddingUnavailable):
        await SemanticScorer(broken_pipeline, vector_store).document_scores("q", ["a"])


def test_relevance_scorer_marks_semantic_unavailable(make_section):
    sections = [(make_section(position=i, title=f"S{i}"), "doc.txt") for i in range(2)]
    scorer = RelevanceScorer()

    without = scorer.score_units("query", sections)
    assert all(u.semantic is None for u in without)

    with_scores = scorer.score_units("query", sections, {"doc1": 0.5})
    assert [u.semantic for u in with_scores] == [0.5, 0.5]

    missing = scorer.score_units("query", sections, {})
    assert [u.semantic for u in missing] == [0.0, 0.0]
