"""Global configuration dataclasses for the policy/value network."""

from dataclasses import dataclass, field, replace
from typing import List, Optional
from enum import Enum


class ConfigurationError(ValueError):
    """Raised when a network configuration cannot produce a working network."""


class PolicyNormalization(Enum):
    """How the policy head normalizes its flattened move logits."""
    SOFTMAX = "softmax"          # inference: a true probability distribution
    LOG_SOFTMAX = "log_softmax"  # training: paired with an NLL-style loss


@dataclass
class NetworkConfig:
    """Configuration for the network architecture.

    `channels` is the width schedule of the residual tower: the stem maps
    `input_channels -> channels[0]` and residual block `i` maps
    `channels[i] -> channels[i + 1]`, so `len(channels) - 1` blocks are built.
    """
    board_size: int = 3
    channels: List[int] = field(default_factory=lambda: [32, 32, 32])
    input_channels: int = 3
    num_actions: int = 1
    training: bool = False
    kernel_size: int = 3
    padding: int = 1
    value_hidden: int = 64

    @property
    def num_res(self) -> int:
        """Number of residual blocks in the tower."""
        return len(self.channels) - 1

    @property
    def head_channels(self) -> int:
        """Width consumed by both heads.

        This is `channels[num_res - 1]`, the second-to-last schedule entry,
        not `channels[-1]`. With uniform widths the two are the same.
        """
        return self.channels[self.num_res - 1]

    @property
    def policy_normalization(self) -> PolicyNormalization:
        if self.training:
            return PolicyNormalization.LOG_SOFTMAX
        return PolicyNormalization.SOFTMAX

    def validate(self) -> "NetworkConfig":
        """Check the invariants that tie the configuration to tensor shapes.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: if any invariant is violated
        """
        if self.board_size <= 0:
            raise ConfigurationError(f"board_size must be positive, got {self.board_size}")
        if self.input_channels <= 0:
            raise ConfigurationError(
                f"input_channels must be positive, got {self.input_channels}"
            )
        if self.num_actions <= 0:
            raise ConfigurationError(f"num_actions must be positive, got {self.num_actions}")
        if len(self.channels) < 2:
            raise ConfigurationError(
                f"channels needs at least 2 entries (one residual block), got {list(self.channels)}"
            )
        if any(c <= 0 for c in self.channels):
            raise ConfigurationError(f"channel widths must be positive, got {list(self.channels)}")
        for i in range(self.num_res):
            if self.channels[i] != self.channels[i + 1]:
                raise ConfigurationError(
                    f"residual block {i} maps {self.channels[i]} -> {self.channels[i + 1]} "
                    f"channels; the skip connection needs equal widths"
                )
        if self.kernel_size <= 0:
            raise ConfigurationError(f"kernel_size must be positive, got {self.kernel_size}")
        if 2 * self.padding != self.kernel_size - 1:
            raise ConfigurationError(
                f"padding {self.padding} does not preserve the board size for kernel "
                f"{self.kernel_size}; use padding={(self.kernel_size - 1) // 2} with an odd kernel"
            )
        if self.value_hidden <= 0:
            raise ConfigurationError(f"value_hidden must be positive, got {self.value_hidden}")
        return self


@dataclass
class TrainingConfig:
    """Configuration for the training loop.

    When `checkpoint_dir` is set the learner saves a checkpoint every
    `checkpoint_interval` steps.
    """
    learning_rate: float = 0.02
    momentum: float = 0.9
    weight_decay: float = 1e-4
    lr_schedule_steps: List[int] = field(default_factory=lambda: [100, 300, 500])
    lr_schedule_gamma: float = 0.1
    max_grad_norm: float = 1.0
    value_weight: float = 1.0
    use_amp: bool = False
    checkpoint_interval: int = 1000
    checkpoint_dir: Optional[str] = None
    log_interval: int = 100


# Board-game presets. Every move type gets one plane of the policy output.
PROFILES = {
    'tictactoe': NetworkConfig(
        board_size=3,
        channels=[32, 32, 32],
        input_channels=3,
        num_actions=1,
    ),
    'gomoku9': NetworkConfig(
        board_size=9,
        channels=[64] * 6,
        input_channels=4,
        num_actions=1,
    ),
    'gomoku15': NetworkConfig(
        board_size=15,
        channels=[128] * 11,
        input_channels=4,
        num_actions=1,
    ),
}


def get_profile(name: str) -> NetworkConfig:
    """Return a copy of a named network preset.

    Raises:
        KeyError: if the profile does not exist
    """
    if name not in PROFILES:
        raise KeyError(f"Unknown profile {name!r}; available: {sorted(PROFILES)}")
    preset = PROFILES[name]
    return replace(preset, channels=list(preset.channels))


@dataclass
class PVNetConfig:
    """Master configuration combining all sub-configs."""
    network: NetworkConfig = field(default_factory=NetworkConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)
    seed: int = 42
    device: str = "cpu"
    dtype: str = "float32"
