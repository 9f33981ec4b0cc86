#!/usr/bin/env python3
"""Neural network architecture demo.

This demo shows the policy/value network architecture and forward pass.
"""

import argparse
import sys
import time
from pathlib import Path

import torch
import numpy as np
from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent.parent))

from pvnet import PVNetConfig, get_profile, PROFILES, set_seed
from pvnet.neural import PVNetwork, count_parameters
from pvnet.utils import resolve_dtype


def empty_tictactoe_board() -> np.ndarray:
    """Empty 3x3 board: planes are (own stones, opponent stones, side to move)."""
    observation = np.zeros((3, 3, 3), dtype=np.float32)
    observation[2] = 1.0
    return observation


def demo_network(profile: str, device: str, dtype: str, benchmark: int, batch_size: int):
    """Demonstrate the neural network architecture."""
    print("=" * 60)
    print("Policy/Value Network Demo")
    print("=" * 60)

    config = PVNetConfig(network=get_profile(profile), device=device, dtype=dtype)
    set_seed(config.seed)
    net_config = config.network
    size = net_config.board_size

    # Create network
    print(f"\nCreating network (profile: {profile})...")
    network = PVNetwork.from_config(
        net_config, device=config.device, dtype=resolve_dtype(config.dtype)
    )

    print(f"\nNetwork Architecture:")
    print(f"  Input: {net_config.input_channels} planes × {size} × {size}")
    print(f"  Initial conv: {net_config.kernel_size}×{net_config.kernel_size}, "
          f"{net_config.channels[0]} filters")
    print(f"  Residual blocks: {network.num_res}")
    print(f"  Policy head: 1×1 conv → {net_config.num_actions} planes → softmax")
    print(f"  Value head: 1×1 conv → FC({net_config.value_hidden}) → FC(2) → softmax*2-1")

    print(f"\nTotal parameters: {count_parameters(network):,}")

    # Count parameters by component
    input_params = sum(p.numel() for p in network.input_conv.parameters())
    tower_params = sum(p.numel() for p in network.residual_tower.parameters())
    policy_params = sum(p.numel() for p in network.policy_head.parameters())
    value_params = sum(p.numel() for p in network.value_head.parameters())

    print(f"\nParameters by component:")
    print(f"  Input conv: {input_params:,}")
    print(f"  Residual tower: {tower_params:,}")
    print(f"  Policy head: {policy_params:,}")
    print(f"  Value head: {value_params:,}")

    print("\n" + "-" * 60)
    print("Forward Pass Demo")
    print("-" * 60)

    if profile == 'tictactoe':
        observation = empty_tictactoe_board()
    else:
        observation = np.zeros((net_config.input_channels, size, size), dtype=np.float32)

    print(f"\nInput observation shape: {observation.shape}")

    obs_tensor = torch.from_numpy(observation).unsqueeze(0).to(
        device=config.device, dtype=resolve_dtype(config.dtype)
    )

    network.eval()
    with torch.no_grad():
        policy, value = network(obs_tensor)

    print(f"\nOutput shapes:")
    print(f"  Policy: {tuple(policy.shape)}")
    print(f"  Value: {tuple(value.shape)}")

    flat_policy = policy.flatten().float().cpu().numpy()
    value_pair = value.squeeze(0).float().cpu().numpy()

    print(f"\nNetwork evaluation:")
    print(f"  Value pair: ({value_pair[0]:+.4f}, {value_pair[1]:+.4f})")
    print(f"  Policy sum: {flat_policy.sum():.4f}")
    print(f"  Policy entropy: {-np.sum(flat_policy * np.log(flat_policy + 1e-8)):.4f}")

    print("\nTop 5 moves by policy (plane, row, col):")
    for index in np.argsort(-flat_policy)[:5]:
        plane, cell = divmod(int(index), size * size)
        row, col = divmod(cell, size)
        print(f"  ({plane}, {row}, {col}): {flat_policy[index]:.4f}")

    if benchmark > 0:
        print("\n" + "-" * 60)
        print(f"Benchmark ({benchmark} forward passes, batch {batch_size})")
        print("-" * 60)

        batch = obs_tensor.expand(batch_size, -1, -1, -1).contiguous()
        times = []
        with torch.no_grad():
            for _ in tqdm(range(benchmark), desc="Forward passes", unit="pass"):
                start = time.perf_counter()
                network(batch)
                if config.device == "cuda":
                    torch.cuda.synchronize()
                times.append(time.perf_counter() - start)

        times = np.array(times)
        print(f"  Mean: {times.mean() * 1000:.3f} ms")
        print(f"  Std:  {times.std() * 1000:.3f} ms")
        print(f"  Positions/sec: {batch_size / times.mean():,.0f}")


def main():
    parser = argparse.ArgumentParser(description="Policy/value network demo")

    parser.add_argument("--profile", type=str, default="tictactoe",
                        choices=sorted(PROFILES),
                        help="Network preset")
    parser.add_argument("--device", type=str, default="cpu",
                        help="Device for inference")
    parser.add_argument("--dtype", type=str, default="float32",
                        help="Parameter dtype (float32, float64, ...)")
    parser.add_argument("--benchmark", type=int, default=0,
                        help="Number of timed forward passes (0 to skip)")
    parser.add_argument("--batch-size", type=int, default=64,
                        help="Batch size for the benchmark")

    args = parser.parse_args()

    if args.device == "cuda" and not torch.cuda.is_available():
        print("CUDA not available, using CPU")
        args.device = "cpu"

    demo_network(args.profile, args.device, args.dtype, args.benchmark, args.batch_size)


if __name__ == "__main__":
    main()
