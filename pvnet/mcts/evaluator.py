"""Neural network evaluator interface for tree search.

Provides a numpy-in, numpy-out boundary between a search procedure and the
policy/value network. The search itself lives outside this package.
"""

import torch
import numpy as np
from torch.amp import autocast
from typing import Optional, Tuple, Protocol

from ..neural.network import PVNetwork


class Evaluator(Protocol):
    """Protocol for position evaluators."""

    def evaluate(
        self,
        observation: np.ndarray,
        legal_mask: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, float]:
        """Evaluate a position.

        Args:
            observation: Board observation (in, S, S)
            legal_mask: Optional legal move mask (out * S * S,)

        Returns:
            Tuple of:
                - policy: Probability distribution (out * S * S,)
                - value: Position evaluation in [-1, 1]
        """
        ...


def apply_legal_mask(policy: np.ndarray, legal_mask: np.ndarray) -> np.ndarray:
    """Zero illegal moves and renormalize along the last axis.

    Rows whose legal moves all received zero probability fall back to a
    uniform distribution over the legal moves.
    """
    mask = legal_mask.astype(policy.dtype)
    masked = policy * mask
    totals = masked.sum(axis=-1, keepdims=True)
    legal_counts = np.maximum(mask.sum(axis=-1, keepdims=True), 1)
    uniform = mask / legal_counts
    safe_totals = np.where(totals > 0, totals, 1)
    return np.where(totals > 0, masked / safe_totals, uniform)


class NetworkEvaluator:
    """Evaluator that uses a PVNetwork."""

    def __init__(
        self,
        network: PVNetwork,
        device: str = "cpu",
        use_amp: bool = False
    ):
        """Initialize evaluator.

        Args:
            network: Policy/value network
            device: Device to run inference on
            use_amp: Use mixed precision (FP16) for inference
        """
        self.network = network.to(device)
        self.device = device
        self.dtype = next(network.parameters()).dtype
        self.use_amp = use_amp and torch.device(device).type == "cuda"  # Only use AMP on CUDA
        self.network.eval()

    def _predict(self, obs_tensor: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        if self.use_amp:
            with autocast('cuda'):
                policy, value = self.network.predict(obs_tensor)
            return policy.float(), value.float()
        return self.network.predict(obs_tensor)

    def evaluate(
        self,
        observation: np.ndarray,
        legal_mask: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, float]:
        """Evaluate a single position.

        Args:
            observation: Board observation (in, S, S)
            legal_mask: Optional legal move mask (out * S * S,)

        Returns:
            Tuple of (policy, value)
        """
        obs_tensor = torch.from_numpy(observation).unsqueeze(0).to(self.device, dtype=self.dtype)

        policy, value = self._predict(obs_tensor)

        policy_np = policy.squeeze(0).cpu().numpy()
        if legal_mask is not None:
            policy_np = apply_legal_mask(policy_np, legal_mask)

        return policy_np, value.item()

    def evaluate_batch(
        self,
        observations: np.ndarray,
        legal_masks: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Evaluate a batch of positions.

        Args:
            observations: Batch of observations (batch, in, S, S)
            legal_masks: Optional batch of legal masks (batch, out * S * S)

        Returns:
            Tuple of (policies, values)
        """
        obs_tensor = torch.from_numpy(observations).to(self.device, dtype=self.dtype)

        policies, values = self._predict(obs_tensor)

        policies_np = policies.cpu().numpy()
        if legal_masks is not None:
            policies_np = apply_legal_mask(policies_np, legal_masks)

        return policies_np, values.cpu().numpy()


class RandomEvaluator:
    """Random evaluator for testing (uniform policy, zero value)."""

    def __init__(self, num_moves: int):
        self.num_moves = num_moves

    def evaluate(
        self,
        observation: np.ndarray,
        legal_mask: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, float]:
        """Return uniform policy over legal moves and zero value."""
        if legal_mask is None:
            legal_mask = np.ones(self.num_moves, dtype=np.float32)
        policy = legal_mask.astype(np.float32)
        policy = policy / np.sum(policy)
        return policy, 0.0


def _array_key(array: Optional[np.ndarray]):
    if array is None:
        return None
    return (array.shape, array.dtype.str, array.tobytes())


class CachedEvaluator:
    """Evaluator with position caching for repeated evaluations."""

    def __init__(
        self,
        evaluator: Evaluator,
        cache_size: int = 10000
    ):
        """Initialize cached evaluator.

        Args:
            evaluator: Underlying evaluator
            cache_size: Maximum cache size
        """
        self.evaluator = evaluator
        self.cache_size = cache_size
        self.cache = {}
        self.hits = 0
        self.misses = 0

    def evaluate(
        self,
        observation: np.ndarray,
        legal_mask: Optional[np.ndarray] = None
    ) -> Tuple[np.ndarray, float]:
        """Evaluate with caching."""
        key = (_array_key(observation), _array_key(legal_mask))

        if key in self.cache:
            self.hits += 1
            policy, value = self.cache[key]
            return policy.copy(), value

        self.misses += 1
        policy, value = self.evaluator.evaluate(observation, legal_mask)

        # Clear everything when full
        if len(self.cache) >= self.cache_size:
            self.cache.clear()
        self.cache[key] = (policy.copy(), value)

        return policy, value

    @property
    def hit_rate(self) -> float:
        """Get cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0
