"""Tests for the search evaluator interface."""

import pytest
import torch
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pvnet.neural import PVNetwork
from pvnet.mcts import (
    NetworkEvaluator,
    RandomEvaluator,
    CachedEvaluator,
    apply_legal_mask,
)


@pytest.fixture
def network():
    """Create a small tic-tac-toe network."""
    return PVNetwork(board_size=3, channels=[16, 16], input_channels=3, num_actions=1)


@pytest.fixture
def observation():
    """Create a test observation."""
    return np.random.randn(3, 3, 3).astype(np.float32)


class TestNetworkEvaluator:
    """Tests for NetworkEvaluator."""

    def test_evaluate(self, network, observation):
        """Test single position evaluation."""
        evaluator = NetworkEvaluator(network)
        policy, value = evaluator.evaluate(observation)

        assert policy.shape == (9,)
        assert np.isclose(policy.sum(), 1.0, atol=1e-5)
        assert -1.0 <= value <= 1.0

    def test_puts_network_in_eval_mode(self, network):
        """Test the evaluator switches batch norm to running statistics."""
        NetworkEvaluator(network)
        assert not network.training

    def test_legal_mask(self, network, observation):
        """Test illegal moves get zero probability."""
        mask = np.zeros(9, dtype=np.float32)
        mask[[0, 4, 8]] = 1.0

        evaluator = NetworkEvaluator(network)
        policy, _ = evaluator.evaluate(observation, mask)

        assert np.isclose(policy.sum(), 1.0, atol=1e-5)
        assert np.all(policy[mask == 0] == 0)

    def test_evaluate_batch(self, network, observation):
        """Test batch evaluation."""
        observations = np.stack([observation] * 4)
        evaluator = NetworkEvaluator(network)

        policies, values = evaluator.evaluate_batch(observations)

        assert policies.shape == (4, 9)
        assert values.shape == (4,)
        assert np.allclose(policies.sum(axis=1), 1.0, atol=1e-5)
        # Identical positions evaluate identically in eval mode
        assert np.allclose(policies, policies[0])

    def test_batch_matches_single(self, network, observation):
        """Test batched and single evaluation agree."""
        evaluator = NetworkEvaluator(network)
        policy, value = evaluator.evaluate(observation)
        policies, values = evaluator.evaluate_batch(observation[None])

        assert np.allclose(policies[0], policy, atol=1e-6)
        assert np.isclose(values[0], value, atol=1e-6)

    def test_training_mode_network(self, observation):
        """Test a log-softmax network still yields probabilities."""
        network = PVNetwork(3, [16, 16], 3, 1, training=True)
        policy, _ = NetworkEvaluator(network).evaluate(observation)
        assert np.all(policy >= 0)
        assert np.isclose(policy.sum(), 1.0, atol=1e-5)

    def test_float64_network(self, observation):
        """Test float32 observations are cast to the network's dtype."""
        network = PVNetwork(3, [8, 8], 3, 1, dtype=torch.float64)
        evaluator = NetworkEvaluator(network)

        policy, value = evaluator.evaluate(observation)
        policies, values = evaluator.evaluate_batch(np.stack([observation] * 2))

        assert policy.dtype == np.float64
        assert np.isclose(policy.sum(), 1.0)
        assert policies.shape == (2, 9)
        assert values.dtype == np.float64
        assert np.isclose(values[0], value)

    def test_torch_device_object(self, network, observation):
        """Test a torch.device is accepted and AMP stays off on CPU."""
        evaluator = NetworkEvaluator(network, device=torch.device("cpu"), use_amp=True)
        assert evaluator.use_amp is False
        policy, _ = evaluator.evaluate(observation)
        assert np.isclose(policy.sum(), 1.0, atol=1e-5)

    @pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
    def test_amp_enabled_for_indexed_cuda_device(self, network):
        """Test AMP is enabled for a device string such as cuda:0."""
        evaluator = NetworkEvaluator(network, device="cuda:0", use_amp=True)
        assert evaluator.use_amp is True

    @pytest.mark.skipif(not torch.cuda.is_available(), reason="CUDA not available")
    def test_amp_matches_fp32(self, network, observation):
        """Test mixed precision stays close to FP32."""
        evaluator_amp = NetworkEvaluator(network, device="cuda", use_amp=True)
        policy_amp, value_amp = evaluator_amp.evaluate(observation)

        evaluator_fp32 = NetworkEvaluator(network, device="cuda", use_amp=False)
        policy_fp32, value_fp32 = evaluator_fp32.evaluate(observation)

        assert np.allclose(policy_amp, policy_fp32, atol=1e-2)
        assert np.isclose(value_amp, value_fp32, atol=1e-2)


class TestApplyLegalMask:
    """Tests for legal move masking."""

    def test_renormalizes(self):
        """Test legal probabilities are rescaled to sum to one."""
        policy = np.array([0.5, 0.25, 0.25], dtype=np.float32)
        mask = np.array([1, 1, 0], dtype=np.float32)
        masked = apply_legal_mask(policy, mask)
        assert np.allclose(masked, [2 / 3, 1 / 3, 0.0])

    def test_uniform_fallback(self):
        """Test all-zero legal probability falls back to uniform over legal moves."""
        policy = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32)
        mask = np.array([0, 1, 1, 0], dtype=np.float32)
        masked = apply_legal_mask(policy, mask)
        assert np.allclose(masked, [0.0, 0.5, 0.5, 0.0])

    def test_batched(self):
        """Test masking applies row by row."""
        policy = np.full((2, 4), 0.25, dtype=np.float32)
        mask = np.array([[1, 0, 0, 0], [1, 1, 1, 1]], dtype=np.float32)
        masked = apply_legal_mask(policy, mask)
        assert np.allclose(masked[0], [1.0, 0.0, 0.0, 0.0])
        assert np.allclose(masked[1], 0.25)


class TestRandomEvaluator:
    """Tests for RandomEvaluator."""

    def test_uniform(self, observation):
        """Test uniform policy and zero value."""
        policy, value = RandomEvaluator(num_moves=9).evaluate(observation)
        assert np.allclose(policy, 1 / 9)
        assert value == 0.0

    def test_uniform_over_legal(self, observation):
        """Test uniform policy restricted to legal moves."""
        mask = np.array([1, 0, 1, 0, 0, 0, 0, 0, 0], dtype=np.float32)
        policy, _ = RandomEvaluator(num_moves=9).evaluate(observation, mask)
        assert np.allclose(policy, mask / 2)


class TestCachedEvaluator:
    """Tests for CachedEvaluator."""

    def test_cache_hits(self, observation):
        """Test repeated positions are served from the cache."""
        evaluator = CachedEvaluator(RandomEvaluator(num_moves=9))

        first = evaluator.evaluate(observation)
        second = evaluator.evaluate(observation)

        assert np.array_equal(first[0], second[0])
        assert first[1] == second[1]
        assert evaluator.hits == 1
        assert evaluator.misses == 1
        assert evaluator.hit_rate == 0.5

    def test_mask_is_part_of_key(self, observation):
        """Test different legal masks are cached separately."""
        evaluator = CachedEvaluator(RandomEvaluator(num_moves=9))
        mask = np.ones(9, dtype=np.float32)
        mask[0] = 0

        evaluator.evaluate(observation)
        evaluator.evaluate(observation, mask)

        assert evaluator.misses == 2

    def test_cache_clears_when_full(self):
        """Test the cache is emptied once it reaches capacity."""
        evaluator = CachedEvaluator(RandomEvaluator(num_moves=9), cache_size=2)
        for i in range(3):
            evaluator.evaluate(np.full((3, 3, 3), i, dtype=np.float32))
        assert len(evaluator.cache) == 1

    def test_mutating_result_keeps_cache_intact(self, observation):
        """Test a caller editing a returned policy does not change later hits."""
        evaluator = CachedEvaluator(RandomEvaluator(num_moves=9))

        policy, _ = evaluator.evaluate(observation)
        policy[:] = 0.0
        cached, _ = evaluator.evaluate(observation)
        cached[0] = 5.0
        again, _ = evaluator.evaluate(observation)

        assert np.allclose(again, 1 / 9)
        assert evaluator.hits == 2

    def test_shape_and_dtype_are_part_of_key(self):
        """Test arrays with the same bytes but different layout are cached separately."""
        evaluator = CachedEvaluator(RandomEvaluator(num_moves=9))

        evaluator.evaluate(np.zeros((3, 3, 3), dtype=np.float32))
        evaluator.evaluate(np.zeros((27,), dtype=np.float32))
        evaluator.evaluate(np.zeros((27,), dtype=np.int32))

        assert evaluator.misses == 3
        assert evaluator.hits == 0
