"""Neural network module for the policy/value network."""

from .network import PVNetwork, create_network, count_parameters, scalar_value
from .blocks import ConvBlock, ResidualBlock, PolicyHead, ValueHead, BN_MOMENTUM
from .loss import (
    PVNetLoss,
    policy_loss,
    value_loss,
    compute_policy_accuracy,
    compute_value_accuracy,
)

__all__ = [
    "PVNetwork",
    "create_network",
    "count_parameters",
    "scalar_value",
    "ConvBlock",
    "ResidualBlock",
    "PolicyHead",
    "ValueHead",
    "BN_MOMENTUM",
    "PVNetLoss",
    "policy_loss",
    "value_loss",
    "compute_policy_accuracy",
    "compute_value_accuracy",
]
