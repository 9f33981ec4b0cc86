"""Neural network building blocks for the policy/value network.

Implements:
- ConvBlock: Convolution + BatchNorm + ReLU
- ResidualBlock: Two Conv + BatchNorm stages with skip connection
- PolicyHead: 1x1 convolution + (log-)softmax over the flattened move planes
- ValueHead: 1x1 convolution + two FC layers + 2-way softmax mapped to [-1, 1]

All batch-norm layers use momentum 0.9 for their running statistics.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F
from typing import Optional

from ..config import ConfigurationError, PolicyNormalization


BN_MOMENTUM = 0.9


class ConvBlock(nn.Module):
    """Convolution block: Conv2d -> BatchNorm -> ReLU."""

    def __init__(
        self,
        in_channels: int,
        out_channels: int,
        kernel_size: int = 3,
        padding: int = 1,
        device: Optional[torch.device] = None,
        dtype: Optional[torch.dtype] = None
    ):
        """Initialize ConvBlock.

        Args:
            in_channels: Number of input channels
            out_channels: Number of output channels
            kernel_size: Convolution kernel size
            padding: Padding size
            device: Device for the parameters
            dtype: Floating point type of the parameters
        """
        super().__init__()
        factory_kwargs = {'device': device, 'dtype': dtype}
        self.conv = nn.Conv2d(
            in_channels,
            out_channels,
            kernel_size=kernel_size,
            padding=padding,
            **factory_kwargs
        )
        self.bn = nn.BatchNorm2d(out_channels, momentum=BN_MOMENTUM, **factory_kwargs)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass."""
        return F.relu(self.bn(self.conv(x)))


class ResidualBlock(nn.Module):
    """Residual block with skip connection.

    Architecture:
        x -> Conv -> BN -> ReLU -> Conv -> BN -> (+x) -> ReLU
    """

    def __init__(
        self,
        in_channels: int,
        out_channels: int,
        kernel_size: int = 3,
        padding: int = 1,
        device: Optional[torch.device] = None,
        dtype: Optional[torch.dtype] = None
    ):
        """Initialize ResidualBlock.

        Args:
            in_channels: Number of input channels
            out_channels: Number of output channels (must equal in_channels)
            kernel_size: Convolution kernel size
            padding: Padding size
            device: Device for the parameters
            dtype: Floating point type of the parameters

        Raises:
            ConfigurationError: if in_channels != out_channels
        """
        super().__init__()
        if in_channels != out_channels:
            raise ConfigurationError(
                f"ResidualBlock needs equal input and output widths for the skip "
                f"connection, got {in_channels} -> {out_channels}"
            )
        factory_kwargs = {'device': device, 'dtype': dtype}
        self.conv1 = nn.Conv2d(
            in_channels, out_channels,
            kernel_size=kernel_size, padding=padding, **factory_kwargs
        )
        self.bn1 = nn.BatchNorm2d(out_channels, momentum=BN_MOMENTUM, **factory_kwargs)
        self.conv2 = nn.Conv2d(
            out_channels, out_channels,
            kernel_size=kernel_size, padding=padding, **factory_kwargs
        )
        self.bn2 = nn.BatchNorm2d(out_channels, momentum=BN_MOMENTUM, **factory_kwargs)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass with skip connection."""
        identity = x

        out = self.conv1(x)
        out = self.bn1(out)
        out = F.relu(out)

        out = self.conv2(out)
        out = self.bn2(out)

        out = out + identity
        out = F.relu(out)

        return out


class PolicyHead(nn.Module):
    """Policy head: outputs move probabilities laid out as board planes.

    Architecture:
        x -> Conv(1x1, num_actions filters) -> Flatten -> (Log)Softmax -> Reshape

    The normalization is chosen once at construction. It does not follow
    `train()` / `eval()`.
    """

    def __init__(
        self,
        in_channels: int,
        num_actions: int,
        normalization: PolicyNormalization = PolicyNormalization.SOFTMAX,
        device: Optional[torch.device] = None,
        dtype: Optional[torch.dtype] = None
    ):
        """Initialize PolicyHead.

        Args:
            in_channels: Number of input channels from residual tower
            num_actions: Number of move planes
            normalization: SOFTMAX for probabilities, LOG_SOFTMAX for log-probabilities
            device: Device for the parameters
            dtype: Floating point type of the parameters
        """
        super().__init__()
        self.conv = nn.Conv2d(in_channels, num_actions, kernel_size=1, device=device, dtype=dtype)
        self.normalization = PolicyNormalization(normalization)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass.

        Args:
            x: Input tensor of shape (batch, in_channels, H, W)

        Returns:
            Tensor of shape (batch, num_actions, H, W), normalized over the
            flattened (num_actions * H * W) axis of each batch row
        """
        x = self.conv(x)
        shape = x.shape
        x = x.flatten(1)
        if self.normalization is PolicyNormalization.LOG_SOFTMAX:
            x = F.log_softmax(x, dim=1)
        else:
            x = F.softmax(x, dim=1)
        return x.view(shape)


class ValueHead(nn.Module):
    """Value head: outputs position evaluation.

    Architecture:
        x -> Conv(1x1, 1 filter) -> BN -> ReLU -> Flatten -> FC(hidden) -> ReLU
          -> FC(2) -> Softmax -> (* 2 - 1)

    The two outputs of each row sum to zero. Component 0 is the expected
    outcome and component 1 is its negation.
    """

    def __init__(
        self,
        in_channels: int,
        board_area: int,
        hidden_size: int = 64,
        device: Optional[torch.device] = None,
        dtype: Optional[torch.dtype] = None
    ):
        """Initialize ValueHead.

        Args:
            in_channels: Number of input channels from residual tower
            board_area: board_size ** 2, the flattened size after the 1x1 conv
            hidden_size: Size of hidden fully-connected layer
            device: Device for the parameters
            dtype: Floating point type of the parameters
        """
        super().__init__()
        factory_kwargs = {'device': device, 'dtype': dtype}
        self.conv = nn.Conv2d(in_channels, 1, kernel_size=1, **factory_kwargs)
        self.bn = nn.BatchNorm2d(1, momentum=BN_MOMENTUM, **factory_kwargs)
        self.fc1 = nn.Linear(board_area, hidden_size, **factory_kwargs)
        self.fc2 = nn.Linear(hidden_size, 2, **factory_kwargs)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass.

        Args:
            x: Input tensor of shape (batch, in_channels, H, W)

        Returns:
            Value pair of shape (batch, 2) in range [-1, 1]
        """
        x = F.relu(self.bn(self.conv(x)))
        x = x.flatten(1)
        x = F.relu(self.fc1(x))
        x = self.fc2(x)
        return F.softmax(x, dim=1) * 2 - 1
