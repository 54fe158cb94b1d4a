import pytest

from doccontext.retrieval.fusion import HybridRanker
from doccontext.retrieval.models import HybridScore, KeywordScore, RetrievalMethod, ScoredUnit


def make_unit(make_section, position, keyword, semantic=None, document_id="doc1"):
    return ScoredUnit(
        section=make_section(document_id=document_id, position=position, title=f"S{position}"),
        document_name=f"{document_id}.txt",
        keyword=keyword,
        semantic=semantic,
    )


def test_hybrid_combines_normalized_scores(make_section):
    units = [
        make_unit(make_section, 0, keyword=100.0, semantic=0.2),
        make_unit(make_section, 1, keyword=10.0, semantic=1.0),
    ]
    ranked = HybridRanker().rank(units)

    assert [r.section.position for r in ranked] == [1, 0]
    top = ranked[0].score
    assert isinstance(top, HybridScore)
    assert top.semantic == pytest.approx(1.0)
    assert top.keyword == pytest.approx(0.1)
    assert top.combined == pytest.approx(0.8 * 1.0 + 0.2 * 0.1)
    assert ranked[1].score.combined == pytest.approx(0.8 * 0.2 + 0.2 * 1.0)


def test_zero_maxima_normalize_to_zero(make_section):
    units = [make_unit(make_section, i, keyword=0.0, semantic=0.0) for i in range(3)]
    ranked = HybridRanker().rank(units)

    assert all(r.score.combined == 0.0 for r in ranked)
    assert [r.section.position for r in ranked] == [0, 1, 2]


def test_without_semantic_scores_orders_by_raw_keyword(make_section):
    units = [
        make_unit(make_section, 0, keyword=3.0),
        make_unit(make_section, 1, keyword=50.0),
        make_unit(make_section, 2, keyword=3.0),
    ]
    ranked = HybridRanker().rank(units)

    assert [r.section.position for r in ranked] == [1, 0, 2]
    assert all(isinstance(r.score, KeywordScore) for r in ranked)
    assert ranked[0].score.value == 50.0


def test_ties_keep_extraction_order(make_section):
    units = [make_unit(make_section, i, keyword=5.0, semantic=0.5) for i in range(5)]
    ranked = HybridRanker().rank(units)
    assert [r.section.position for r in ranked] == list(range(5))


def test_custom_weights(make_section):
    units = [
        make_unit(make_section, 0, keyword=100.0, semantic=0.2),
        make_unit(make_section, 1, keyword=10.0, semantic=1.0),
    ]
    ranked = HybridRanker(semantic_weight=0.0, keyword_weight=1.0).rank(units)
    assert ranked[0].section.position == 0


def test_score_variant_method_tags():
    assert HybridScore(keyword=0, semantic=0, combined=0).method == RetrievalMethod.HYBRID.value
    assert KeywordScore(keyword=1).method == RetrievalMethod.KEYWORD.value
