"""Training module for the policy/value network."""

from .learner import Learner

__all__ = [
    "Learner",
]
