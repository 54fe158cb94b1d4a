"""Render a context selection as the text block handed to the LLM."""

from typing import Dict, List

from doccontext.retrieval.models import ContextSelection, SelectedUnit

CONTEXT_HEADER = "=== CONTEXT FROM SELECTED SOURCES ===\n\n"
CONTEXT_FOOTER = "=== END CONTEXT ===\n\n"


def _unit_header(unit: SelectedUnit) -> str:
    if unit.page_number is None:
        return f"\n[{unit.title}]\n"
    return f"\n[{unit.title}] (Page {unit.page_number})\n"


def build_context_string(selection: ContextSelection) -> str:
    """Group units by document (first-seen order) and render them in source order.

    Pure and deterministic; an empty selection renders as ``""``.
    """
    if not selection.units:
        return ""

    groups: Dict[str, List[SelectedUnit]] = {}
    for unit in selection.units:
        groups.setdefault(unit.document_id, []).append(unit)

    parts = [CONTEXT_HEADER]
    for units in groups.values():
        parts.append(f"--- Source: {units[0].document_name} ---\n")
        for unit in sorted(units, key=lambda u: u.position):
            parts.append(_unit_header(unit))
            parts.append(unit.content + "\n")
        parts.append("\n")
    parts.append(CONTEXT_FOOTER)
    return "".join(parts)
