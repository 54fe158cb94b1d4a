import pytest
from pydantic import ValidationError

from doccontext.config import ConfigAdapter
from doccontext.config.settings import (
    DEFAULT_MODEL_BUDGETS,
    ChunkingSettings,
    RetrievalSettings,
    Settings,
)


def test_defaults():
    settings = Settings()
    assert settings.retrieval.semantic_weight == 0.8
    assert settings.retrieval.keyword_weight == 0.2
    assert settings.chunking.overlap_percent == 10
    assert settings.budget.default_budget == 32000
    assert settings.budget.model_budgets == DEFAULT_MODEL_BUDGETS
    assert settings.emergency.separator == "\n...\n"


def test_environment_override(monkeypatch):
    monkeypatch.setenv("DOCCONTEXT_RETRIEVAL_SEMANTIC_WEIGHT", "0.6")
    monkeypatch.setenv("DOCCONTEXT_EMBEDDINGS_BATCH_SIZE", "8")
    settings = Settings()
    assert settings.retrieval.semantic_weight == 0.6
    assert settings.embeddings.batch_size == 8


def test_overlap_outside_range_rejected():
    with pytest.raises(ValidationError):
        ChunkingSettings(overlap_percent=40)
    with pytest.raises(ValidationError):
        ChunkingSettings(overlap_percent=5)


def test_domain_keywords_normalized():
    settings = RetrievalSettings(domain_keywords=["  Fire Rating ", "", "BOQ"])
    assert settings.domain_keywords == ["fire rating", "boq"]


class TestConfigAdapter:
    def test_dotted_get(self):
        adapter = ConfigAdapter(Settings())
        assert adapter.get("retrieval.min_term_length") == 3
        assert adapter.get("budget.model_budgets.gpt-4o") == 64000
        assert adapter.get("retrieval.nope", "fallback") == "fallback"

    def test_set_existing_and_unknown_keys(self):
        adapter = ConfigAdapter(Settings())
        adapter.set("emergency.context_chars", 50)
        adapter.set("experimental.flag", True)

        assert adapter.get("emergency.context_chars") == 50
        assert adapter.get("experimental.flag") is True
        assert adapter.all["experimental.flag"] is True
        assert adapter.all["emergency"]["context_chars"] == 50
