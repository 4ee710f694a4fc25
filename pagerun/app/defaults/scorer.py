"""
Weighted category scoring.

A category score is the weighted arithmetic mean of the scores of the
audits it references. Audits without a score (informative, not
applicable, errored, or filtered out of the run) contribute zero
weight. A category whose total weight is zero scores 0.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from pagerun.app.schemas.config import CategoryDefinition
from pagerun.app.schemas.report import AuditResult, CategoryResult

logger = logging.getLogger(__name__)


def arithmetic_mean(items: Iterable[Tuple[float, float]]) -> float:
    """Weighted mean of (score, weight) pairs, clamped to [0, 1]."""
    total_weight = 0.0
    weighted_sum = 0.0
    for score, weight in items:
        total_weight += weight
        weighted_sum += score * weight

    if total_weight == 0:
        return 0.0
    return min(1.0, max(0.0, weighted_sum / total_weight))


class WeightedCategoryScorer:
    def score_all_categories(
        self,
        categories: Sequence[CategoryDefinition],
        results_by_id: Mapping[str, AuditResult],
    ) -> Dict[str, CategoryResult]:
        scored: Dict[str, CategoryResult] = {}

        for category in categories:
            items = []
            for ref in category.audit_refs:
                result = results_by_id.get(ref.id)
                if result is None:
                    logger.debug(
                        "Category %s references audit %s with no result",
                        category.id,
                        ref.id,
                    )
                    continue
                if result.score is None:
                    items.append((0.0, 0.0))
                else:
                    items.append((result.score, ref.weight))

            scored[category.id] = CategoryResult(
                id=category.id,
                title=category.title,
                description=category.description,
                manual_description=category.manual_description,
                score=arithmetic_mean(items),
                audit_refs=list(category.audit_refs),
            )

        return scored
