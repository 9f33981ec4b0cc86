"""pvnet.

A PyTorch implementation of the AlphaGo Zero policy/value network for
square board games.
"""

__version__ = "0.1.0"

from .config import (
    PVNetConfig,
    NetworkConfig,
    TrainingConfig,
    PolicyNormalization,
    ConfigurationError,
    PROFILES,
    get_profile,
)
from .utils import (
    checkpoint_filename,
    parse_checkpoint_architecture,
    load_checkpoint_with_architecture,
    load_network_from_checkpoint,
    set_seed,
)

__all__ = [
    "PVNetConfig",
    "NetworkConfig",
    "TrainingConfig",
    "PolicyNormalization",
    "ConfigurationError",
    "PROFILES",
    "get_profile",
    "checkpoint_filename",
    "parse_checkpoint_architecture",
    "load_checkpoint_with_architecture",
    "load_network_from_checkpoint",
    "set_seed",
]
