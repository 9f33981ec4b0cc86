"""Tests for checkpoint and helper utilities."""

import pytest
import torch

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pvnet import (
    NetworkConfig,
    checkpoint_filename,
    parse_checkpoint_architecture,
    load_checkpoint_with_architecture,
    load_network_from_checkpoint,
    set_seed,
)
from pvnet.neural import PVNetwork
from pvnet.utils import resolve_dtype, network_config_dict


class TestCheckpointNames:
    """Tests for architecture-tagged checkpoint filenames."""

    def test_filename(self):
        """Test the filename records board size and widths."""
        config = NetworkConfig(board_size=3, channels=[32, 32, 32])
        assert checkpoint_filename(1000, config) == "checkpoint_1000_s3_c32-32-32.pt"

    def test_parse(self):
        """Test parsing a tagged filename inside a directory."""
        arch = parse_checkpoint_architecture("runs/a/checkpoint_50_s9_c64-64.pt")
        assert arch == (9, [64, 64])

    def test_parse_roundtrip(self):
        """Test a generated filename parses back to its architecture."""
        config = NetworkConfig(board_size=15, channels=[128] * 4)
        arch = parse_checkpoint_architecture(checkpoint_filename(7, config))
        assert arch == (15, [128, 128, 128, 128])

    def test_parse_unrecognized(self):
        """Test unrelated filenames give None."""
        assert parse_checkpoint_architecture("model_final.pt") is None


class TestLoadNetwork:
    """Tests for rebuilding networks from checkpoints."""

    def test_stored_config_wins(self, tmp_path):
        """Test the checkpoint's own config is used."""
        config = NetworkConfig(board_size=3, channels=[8, 8], input_channels=3, num_actions=2)
        network = PVNetwork.from_config(config)
        path = tmp_path / "model.pt"
        torch.save({
            'network_state_dict': network.state_dict(),
            'network_config': network_config_dict(config),
        }, path)

        state, stored = load_checkpoint_with_architecture(str(path))
        assert stored == config
        assert 'network_state_dict' in state

        restored = load_network_from_checkpoint(str(path))
        assert restored.num_actions == 2
        assert not restored.training

    def test_missing_architecture(self, tmp_path):
        """Test a bare state dict without a fallback config is rejected."""
        network = PVNetwork(3, [8, 8], 3, 1)
        path = tmp_path / "bare.pt"
        torch.save({'network_state_dict': network.state_dict()}, path)

        with pytest.raises(ValueError, match="no network_config"):
            load_network_from_checkpoint(str(path))

    def test_filename_fallback(self, tmp_path):
        """Test board size and widths are taken from the filename."""
        network = PVNetwork(5, [8, 8, 8], 3, 1)
        fallback = NetworkConfig(board_size=3, channels=[4, 4], input_channels=3, num_actions=1)
        path = tmp_path / checkpoint_filename(10, network.config)
        torch.save({'network_state_dict': network.state_dict()}, path)

        restored = load_network_from_checkpoint(str(path), config=fallback)

        assert restored.board_size == 5
        assert restored.channels == [8, 8, 8]


class TestHelpers:
    """Tests for small helpers."""

    def test_resolve_dtype(self):
        """Test dtype names map to torch dtypes."""
        assert resolve_dtype("float32") is torch.float32
        assert resolve_dtype("float64") is torch.float64

    def test_resolve_unknown_dtype(self):
        """Test unknown dtype names are rejected."""
        with pytest.raises(ValueError, match="Unsupported dtype"):
            resolve_dtype("int8")

    def test_set_seed_reproducible(self):
        """Test seeding makes network initialization repeatable."""
        set_seed(123)
        a = PVNetwork(3, [8, 8], 3, 1)
        set_seed(123)
        b = PVNetwork(3, [8, 8], 3, 1)
        for key, value in a.state_dict().items():
            assert torch.equal(value, b.state_dict()[key])
