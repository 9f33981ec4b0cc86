"""Evaluation interface consumed by an external tree search."""

from .evaluator import (
    Evaluator,
    NetworkEvaluator,
    RandomEvaluator,
    CachedEvaluator,
    apply_legal_mask,
)

__all__ = [
    "Evaluator",
    "NetworkEvaluator",
    "RandomEvaluator",
    "CachedEvaluator",
    "apply_legal_mask",
]
