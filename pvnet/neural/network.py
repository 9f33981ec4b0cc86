"""Policy/value network architecture.

Implements the dual-headed network from the AlphaGo Zero paper:
- Shared residual tower
- Policy head (move probabilities laid out as board planes)
- Value head (position evaluation)
"""

import logging
import torch
import torch.nn as nn
from typing import Optional, Sequence, Tuple, Union

from .blocks import ConvBlock, ResidualBlock, PolicyHead, ValueHead
from ..config import NetworkConfig, PolicyNormalization


logger = logging.getLogger(__name__)


def scalar_value(value: torch.Tensor) -> torch.Tensor:
    """Collapse the (batch, 2) value pair to the expected outcome (batch,)."""
    return value[..., 0]


class PVNetwork(nn.Module):
    """Policy/value network with a residual tower.

    Architecture:
        Input (in, S, S)
            |
        ConvBlock (KxK, channels[0])
            |
        ResidualBlock × (len(channels) - 1)
            |
        +-------+-------+
        |               |
    PolicyHead      ValueHead
        |               |
    (out, S, S)       (2,)

    Both heads are built for `channels[num_res - 1]` input channels.
    """

    def __init__(
        self,
        board_size: int,
        channels: Sequence[int],
        input_channels: int,
        num_actions: int,
        training: bool = False,
        kernel_size: int = 3,
        padding: int = 1,
        value_hidden: int = 64,
        device: Optional[Union[str, torch.device]] = None,
        dtype: Optional[torch.dtype] = None
    ):
        """Initialize PVNetwork.

        Args:
            board_size: Side length of the square board (3 for tic-tac-toe)
            channels: Width schedule; len(channels) - 1 residual blocks are built
            input_channels: Number of input planes
            num_actions: Number of move planes in the policy output
            training: Build the policy head with log-softmax instead of softmax.
                This is fixed for the lifetime of the network and does not
                interact with `train()` / `eval()`.
            kernel_size: Kernel size of the stem and residual convolutions
            padding: Padding of the stem and residual convolutions
            value_hidden: Hidden layer size in value head
            device: Device for the parameters
            dtype: Floating point type of the parameters

        Raises:
            ConfigurationError: if the configuration cannot produce a working network
        """
        super().__init__()

        self.config = NetworkConfig(
            board_size=board_size,
            channels=list(channels),
            input_channels=input_channels,
            num_actions=num_actions,
            training=training,
            kernel_size=kernel_size,
            padding=padding,
            value_hidden=value_hidden,
        ).validate()

        self.board_size = board_size
        self.channels = list(channels)
        self.input_channels = input_channels
        self.num_actions = num_actions
        self.num_res = self.config.num_res
        self.head_channels = self.config.head_channels
        self.policy_normalization = self.config.policy_normalization

        factory_kwargs = {'device': device, 'dtype': dtype}

        # Initial convolution
        self.input_conv = ConvBlock(
            input_channels, self.channels[0], kernel_size, padding, **factory_kwargs
        )

        # Residual tower
        self.residual_tower = nn.Sequential(*[
            ResidualBlock(
                self.channels[i], self.channels[i + 1], kernel_size, padding, **factory_kwargs
            )
            for i in range(self.num_res)
        ])

        # Output heads
        self.policy_head = PolicyHead(
            self.head_channels, num_actions, self.policy_normalization, **factory_kwargs
        )
        self.value_head = ValueHead(
            self.head_channels, board_size * board_size, value_hidden, **factory_kwargs
        )

        logger.debug(
            f"Built PVNetwork: board={board_size}, channels={self.channels}, "
            f"in={input_channels}, out={num_actions}, "
            f"policy={self.policy_normalization.value}, params={count_parameters(self):,}"
        )

    @classmethod
    def from_config(
        cls,
        config: NetworkConfig,
        device: Optional[Union[str, torch.device]] = None,
        dtype: Optional[torch.dtype] = None
    ) -> "PVNetwork":
        """Build a network from a NetworkConfig."""
        return cls(
            board_size=config.board_size,
            channels=config.channels,
            input_channels=config.input_channels,
            num_actions=config.num_actions,
            training=config.training,
            kernel_size=config.kernel_size,
            padding=config.padding,
            value_hidden=config.value_hidden,
            device=device,
            dtype=dtype,
        )

    def forward(self, x: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """Forward pass through the network.

        Args:
            x: Input tensor of shape (batch, input_channels, board_size, board_size)

        Returns:
            Tuple of:
                - policy: (batch, num_actions, board_size, board_size), probabilities
                  or log-probabilities over the flattened move axis
                - value: (batch, 2) value pair, components sum to 0

        Raises:
            ValueError: if the input shape does not match the configuration
        """
        expected = (self.input_channels, self.board_size, self.board_size)
        if x.dim() != 4 or tuple(x.shape[1:]) != expected:
            raise ValueError(
                f"Expected input of shape (batch, {expected[0]}, {expected[1]}, {expected[2]}), "
                f"got {tuple(x.shape)}"
            )

        # Shared trunk
        x = self.input_conv(x)
        x = self.residual_tower(x)

        return self.policy_head(x), self.value_head(x)

    def predict(self, x: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor]:
        """Get policy probabilities and value for inference.

        Args:
            x: Input tensor of shape (batch, input_channels, board_size, board_size)

        Returns:
            Tuple of:
                - policy: Probability distribution of shape
                  (batch, num_actions * board_size * board_size)
                - value: Expected outcome of shape (batch,)
        """
        with torch.no_grad():
            policy, value = self.forward(x)

        if self.policy_normalization is PolicyNormalization.LOG_SOFTMAX:
            policy = policy.exp()

        return policy.flatten(1), scalar_value(value)

    def get_policy_and_value(
        self,
        observation: torch.Tensor
    ) -> Tuple[torch.Tensor, float]:
        """Convenience method for single position evaluation.

        Args:
            observation: Single observation of shape (input_channels, board_size, board_size)

        Returns:
            Tuple of:
                - policy: Probabilities of shape (num_actions, board_size, board_size)
                - value: Scalar position evaluation
        """
        policy, value = self.predict(observation.unsqueeze(0))
        policy = policy.view(self.num_actions, self.board_size, self.board_size)
        return policy, value.item()


def create_network(
    config: Optional[NetworkConfig] = None,
    device: str = "cpu",
    dtype: Optional[torch.dtype] = None
) -> PVNetwork:
    """Factory function to create a policy/value network.

    Args:
        config: Network configuration (defaults to NetworkConfig())
        device: Device to place the network on
        dtype: Floating point type of the parameters

    Returns:
        Initialized PVNetwork
    """
    return PVNetwork.from_config(config or NetworkConfig(), device=device, dtype=dtype)


def count_parameters(model: nn.Module) -> int:
    """Count trainable parameters in a model."""
    return sum(p.numel() for p in model.parameters() if p.requires_grad)
