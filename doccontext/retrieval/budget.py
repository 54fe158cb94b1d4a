"""
Token budgets per model and greedy budget-limited selection.
"""

import math
from typing import Dict, Optional, Sequence

from doccontext.config import config
from doccontext.monitoring import metrics
from doccontext.retrieval.models import ContextSelection, RankedUnit, RetrievalMethod, SelectedUnit
from doccontext.utils.logger import logger
from doccontext.utils.utils import Utils


def large_context_warning(total_tokens: int) -> str:
    # Half-up rounding of thousands.
    thousands = math.floor(total_tokens / 1000 + 0.5)
    return f"Large context (~{thousands}k tokens). Response may be slower."


class ModelBudgetTable:
    """Maps model ids to token budgets; unknown ids get a conservative default."""

    def __init__(
        self,
        budgets: Optional[Dict[str, int]] = None,
        default_budget: Optional[int] = None,
        tier_fractions: Optional[Dict[RetrievalMethod, float]] = None,
    ):
        self.budgets = dict(budgets if budgets is not None else config.get("budget.model_budgets", {}))
        self.default_budget = default_budget or config.get("budget.default_budget", 32000)
        self.tier_fractions = tier_fractions or {
            method: config.get(f"budget.{method.value}_fraction", 1.0) for method in RetrievalMethod
        }

    def token_budget_for(self, model_id: str, method: Optional[RetrievalMethod] = None) -> int:
        budget = self.budgets.get(model_id)
        if budget is None:
            logger.debug(f"No budget configured for model {model_id}; using {self.default_budget}")
            budget = self.default_budget
        if method is not None:
            budget = max(1, int(budget * self.tier_fractions.get(method, 1.0)))
        return budget


class BudgetSelector:
    """Greedy prefix selection of ranked units under a token budget.

    Units are taken in rank order while they fit. When the very first unit
    overflows it is truncated to the budget so the model always gets
    something; any later overflow stops selection.
    """

    def __init__(self, warning_ratio: Optional[float] = None):
        self.warning_ratio = warning_ratio or config.get("retrieval.warning_ratio", 0.8)

    def warning_for(self, total_tokens: int, token_budget: int) -> Optional[str]:
        if token_budget > 0 and total_tokens > self.warning_ratio * token_budget:
            return large_context_warning(total_tokens)
        return None

    def select(
        self,
        ranked: Sequence[RankedUnit],
        token_budget: int,
        method: Optional[RetrievalMethod] = None,
    ) -> ContextSelection:
        selected = []
        seen = set()
        total = 0

        if token_budget <= 0:
            return ContextSelection(token_budget=max(token_budget, 0), method=method)

        for unit in ranked:
            key = (unit.section.document_id, unit.section.id)
            if key in seen:
                continue
            tokens = unit.section.token_count

            if total + tokens > token_budget:
                if not selected:
                    content = unit.section.content[: Utils.chars_for_tokens(token_budget)]
                    selected.append(SelectedUnit.from_ranked(
                        unit,
                        content=content,
                        token_count=token_budget,
                        truncated=True,
                    ))
                    total = token_budget
                    metrics.record("selection.truncated")
                    logger.info(
                        f"Truncated '{unit.section.title}' from {tokens} to {token_budget} tokens"
                    )
                break

            selected.append(SelectedUnit.from_ranked(unit))
            seen.add(key)
            total += tokens

        return ContextSelection(
            units=selected,
            total_tokens=total,
            token_budget=token_budget,
            method=method,
            warning=self.warning_for(total, token_budget),
        )
