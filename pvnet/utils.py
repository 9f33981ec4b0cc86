"""Utility functions for checkpoints, seeding and dtypes."""

import logging
import random
import re
from dataclasses import asdict, replace
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import torch

from .config import NetworkConfig


logger = logging.getLogger(__name__)

_CHECKPOINT_PATTERN = re.compile(r'checkpoint_(\d+)_s(\d+)_c(\d+(?:-\d+)*)\.pt')

_DTYPES = {
    'float16': torch.float16,
    'bfloat16': torch.bfloat16,
    'float32': torch.float32,
    'float64': torch.float64,
}


def resolve_dtype(name: str) -> torch.dtype:
    """Map a config dtype name such as "float32" to a torch dtype."""
    try:
        return _DTYPES[name]
    except KeyError:
        raise ValueError(f"Unsupported dtype {name!r}; expected one of {sorted(_DTYPES)}") from None


def set_seed(seed: int) -> None:
    """Seed python, numpy and torch RNGs."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def checkpoint_filename(step: int, config: NetworkConfig) -> str:
    """Build a checkpoint filename that records the tower architecture.

    Example: step 1000, board 3, channels [32, 32, 32]
        -> checkpoint_1000_s3_c32-32-32.pt
    """
    widths = "-".join(str(c) for c in config.channels)
    return f"checkpoint_{step}_s{config.board_size}_c{widths}.pt"


def parse_checkpoint_architecture(checkpoint_path: str) -> Optional[Tuple[int, List[int]]]:
    """Parse network architecture from checkpoint filename.

    Expects filename format: checkpoint_<step>_s<board_size>_c<w0>-<w1>-...pt
    Example: checkpoint_1000_s3_c32-32-32.pt -> (3, [32, 32, 32])

    Args:
        checkpoint_path: Path to checkpoint file

    Returns:
        Tuple of (board_size, channels) if found, None otherwise
    """
    filename = Path(checkpoint_path).name
    match = _CHECKPOINT_PATTERN.fullmatch(filename)

    if match:
        board_size = int(match.group(2))
        channels = [int(c) for c in match.group(3).split("-")]
        return (board_size, channels)

    return None


def load_checkpoint_with_architecture(
    checkpoint_path: str,
    device: str = "cpu"
) -> Tuple[dict, Optional[NetworkConfig]]:
    """Load checkpoint and return state dict with architecture info.

    Args:
        checkpoint_path: Path to checkpoint file
        device: Device to load checkpoint on

    Returns:
        Tuple of (state, network_config); network_config is None when the
        checkpoint does not carry one
    """
    state = torch.load(checkpoint_path, map_location=device, weights_only=False)

    if 'network_config' in state:
        return state, NetworkConfig(**state['network_config'])

    return state, None


def load_network_from_checkpoint(
    checkpoint_path: str,
    device: str = "cpu",
    config: Optional[NetworkConfig] = None
):
    """Rebuild a network from a checkpoint and load its weights.

    The architecture stored in the checkpoint wins. Otherwise `config` is
    used, with board size and channels taken from the filename if present.

    Args:
        checkpoint_path: Path to checkpoint file
        device: Device to place the network on
        config: Fallback configuration for checkpoints without metadata

    Returns:
        PVNetwork in eval mode

    Raises:
        ValueError: if no architecture can be determined
    """
    from .neural.network import PVNetwork

    state, stored_config = load_checkpoint_with_architecture(checkpoint_path, device)

    if stored_config is not None:
        network_config = stored_config
    elif config is not None:
        network_config = config
        arch = parse_checkpoint_architecture(checkpoint_path)
        if arch:
            network_config = replace(config, board_size=arch[0], channels=arch[1])
    else:
        raise ValueError(
            f"Checkpoint {checkpoint_path} has no network_config; pass a NetworkConfig"
        )

    network = PVNetwork.from_config(network_config, device=device)
    network.load_state_dict(state['network_state_dict'])
    network.eval()

    logger.info(
        f"Loaded network from {checkpoint_path} "
        f"(board={network_config.board_size}, channels={network_config.channels})"
    )
    return network


def network_config_dict(config: NetworkConfig) -> dict:
    """Serializable form of a NetworkConfig for checkpoints."""
    return asdict(config)
