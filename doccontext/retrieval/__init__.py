from doccontext.retrieval.assembler import build_context_string
from doccontext.retrieval.budget import BudgetSelector, ModelBudgetTable
from doccontext.retrieval.models import (
    ContextSelection,
    EmergencyScore,
    HybridScore,
    KeywordScore,
    RetrievalMethod,
    SelectedUnit,
)
from doccontext.retrieval.orchestrator import RetrievalOrchestrator

__all__ = [
    "BudgetSelector",
    "ContextSelection",
    "EmergencyScore",
    "HybridScore",
    "KeywordScore",
    "ModelBudgetTable",
    "RetrievalMethod",
    "RetrievalOrchestrator",
    "SelectedUnit",
    "build_context_string",
]
