from doccontext.retrieval.assembler import build_context_string
from doccontext.retrieval.models import ContextSelection, KeywordScore, RetrievalMethod, SelectedUnit


def unit(doc_id, name, position, title, content, page=1):
    return SelectedUnit(
        document_id=doc_id,
        document_name=name,
        section_id=f"{doc_id}_section_{position}",
        title=title,
        content=content,
        page_number=page,
        position=position,
        token_count=len(content) // 4 + 1,
        score=KeywordScore(keyword=1.0),
    )


def test_empty_selection_renders_empty_string():
    assert build_context_string(ContextSelection()) == ""


def test_layout_groups_by_document_in_first_seen_order():
    selection = ContextSelection(
        units=[
            unit("b", "b.pdf", 3, "Doors", "Door D1 is 60 min."),
            unit("a", "a.pdf", 0, "Intro", "Scope of works."),
            unit("b", "b.pdf", 1, "Walls", "Wall type W2.", page=None),
        ],
        total_tokens=12,
        token_budget=100,
        method=RetrievalMethod.KEYWORD,
    )

    expected = (
        "=== CONTEXT FROM SELECTED SOURCES ===\n\n"
        "--- Source: b.pdf ---\n"
        "\n[Walls]\nWall type W2.\n"
        "\n[Doors] (Page 1)\nDoor D1 is 60 min.\n"
        "\n"
        "--- Source: a.pdf ---\n"
        "\n[Intro] (Page 1)\nScope of works.\n"
        "\n"
        "=== END CONTEXT ===\n\n"
    )
    assert build_context_string(selection) == expected


def test_rendering_is_deterministic():
    selection = ContextSelection(units=[unit("a", "a.pdf", 0, "T", "body")], total_tokens=2, token_budget=10)
    copy = ContextSelection.model_validate(selection.model_dump())

    first = build_context_string(selection)
    assert all(build_context_string(selection) == first for _ in range(5))
    assert build_context_string(copy) == first


def test_unit_method_derived_from_score():
    u = unit("a", "a.pdf", 0, "T", "body")
    assert u.method == RetrievalMethod.KEYWORD
    dumped = u.model_dump()
    assert dumped["score"]["method"] == "keyword"
