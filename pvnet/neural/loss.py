"""Loss functions for policy/value training.

Implements:
- Policy loss: Cross-entropy between search policy and network output
- Value loss: MSE between game outcome and the network's value pair
- Combined loss: L = L_policy + c_value * L_value
"""

import torch
import torch.nn as nn
import torch.nn.functional as F
from typing import Tuple, Dict


# Floor applied before taking the log of softmax probabilities
PROB_EPS = 1e-8


def _log_probs(policy: torch.Tensor, log_input: bool) -> torch.Tensor:
    """Flatten a policy tensor to (batch, moves) log-probabilities."""
    policy = policy.flatten(1)
    if log_input:
        return policy
    return torch.log(policy.clamp_min(PROB_EPS))


def _value_pair_target(target_value: torch.Tensor) -> torch.Tensor:
    """Expand outcomes z of shape (batch,) into value pairs (z, -z)."""
    if target_value.dim() == 2:
        target_value = target_value.squeeze(-1)
    return torch.stack([target_value, -target_value], dim=-1)


class PVNetLoss(nn.Module):
    """Combined policy and value loss.

    L = L_policy + c_value * L_value

    Where:
        L_policy = -π^T · log(p)        (cross-entropy with search policy)
        L_value  = mean((v - (z, -z))²)  (MSE with game outcome)
    """

    def __init__(self, value_weight: float = 1.0, log_input: bool = True):
        """Initialize loss function.

        Args:
            value_weight: Weight for value loss (default 1.0)
            log_input: Whether the policy is log-probabilities (training-mode
                network) rather than probabilities
        """
        super().__init__()
        self.value_weight = value_weight
        self.log_input = log_input

    def forward(
        self,
        policy: torch.Tensor,
        target_policy: torch.Tensor,
        value: torch.Tensor,
        target_value: torch.Tensor
    ) -> Tuple[torch.Tensor, Dict[str, float]]:
        """Compute combined loss.

        Args:
            policy: Network policy output (batch, num_actions, H, W)
            target_policy: Search visit distribution, same number of elements per row
            value: Network value pair (batch, 2)
            target_value: Game outcome (batch,) in [-1, 1]

        Returns:
            Tuple of:
                - total_loss: Combined loss scalar
                - metrics: Dict with individual loss components
        """
        p_loss = policy_loss(policy, target_policy, log_input=self.log_input)
        v_loss = value_loss(value, target_value)

        total_loss = p_loss + self.value_weight * v_loss

        metrics = {
            'loss': total_loss.item(),
            'policy_loss': p_loss.item(),
            'value_loss': v_loss.item(),
        }

        return total_loss, metrics


def policy_loss(
    policy: torch.Tensor,
    target_policy: torch.Tensor,
    log_input: bool = True
) -> torch.Tensor:
    """Compute policy cross-entropy loss.

    Args:
        policy: Network policy output, any shape with batch first
        target_policy: Search visit distribution, same number of elements per row
        log_input: Whether `policy` already holds log-probabilities

    Returns:
        Policy loss scalar
    """
    log_probs = _log_probs(policy, log_input)
    return -torch.sum(target_policy.flatten(1) * log_probs, dim=-1).mean()


def value_loss(
    value: torch.Tensor,
    target_value: torch.Tensor
) -> torch.Tensor:
    """Compute value MSE loss.

    Args:
        value: Network value pair (batch, 2)
        target_value: Game outcome (batch,) or (batch, 1)

    Returns:
        Value loss scalar
    """
    return F.mse_loss(value, _value_pair_target(target_value).to(value.dtype))


def compute_policy_accuracy(
    policy: torch.Tensor,
    target_policy: torch.Tensor
) -> float:
    """Compute accuracy of policy predictions.

    Accuracy is the fraction of positions where the network's
    top choice matches the search's top choice.

    Args:
        policy: Network policy output, probabilities or log-probabilities
        target_policy: Search visit distribution

    Returns:
        Accuracy as a float in [0, 1]
    """
    # argmax is the same for probabilities and log-probabilities
    pred_actions = policy.flatten(1).argmax(dim=-1)
    target_actions = target_policy.flatten(1).argmax(dim=-1)

    correct = (pred_actions == target_actions).float().mean()
    return correct.item()


def compute_value_accuracy(
    value: torch.Tensor,
    target_value: torch.Tensor,
    threshold: float = 0.5
) -> float:
    """Compute accuracy of value predictions.

    A prediction is correct if it has the same sign as the target
    (or both are within threshold of zero for draws).

    Args:
        value: Network value pair (batch, 2) or expected outcome (batch,)
        target_value: Game outcome (batch,) or (batch, 1)
        threshold: Threshold for considering a value as "draw"

    Returns:
        Accuracy as a float in [0, 1]
    """
    if value.dim() == 2:
        value = value[:, 0]
    if target_value.dim() == 2:
        target_value = target_value.squeeze(-1)

    pred_sign = torch.sign(value)
    target_sign = torch.sign(target_value)

    # Handle draws (values close to 0)
    pred_sign = torch.where(
        torch.abs(value) < threshold,
        torch.zeros_like(pred_sign),
        pred_sign
    )

    correct = (pred_sign == target_sign).float().mean()
    return correct.item()
