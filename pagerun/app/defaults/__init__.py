"""
Default collaborator implementations.

Everything the pipeline consumes except the collector has a default
here, so evaluate-only runs work without extra wiring.
"""

from .evaluator import ConcurrentEvaluator
from .localizer import CatalogLocalizer, NullLocalizer
from .renderer import JsonReportRenderer
from .scorer import WeightedCategoryScorer
from .store import DirectoryArtifactStore

__all__ = [
    "CatalogLocalizer",
    "ConcurrentEvaluator",
    "DirectoryArtifactStore",
    "JsonReportRenderer",
    "NullLocalizer",
    "WeightedCategoryScorer",
]
