"""Training loop for the policy/value network.

Implements the learner that fits the network to batches of
(observation, search policy, game outcome) supplied by the caller.
"""

import torch
import torch.optim as optim
import numpy as np
from torch.amp import autocast, GradScaler
from typing import Dict, Iterable, Optional, Tuple, Union
import logging
from pathlib import Path

from ..neural.network import PVNetwork
from ..neural.loss import PVNetLoss, compute_policy_accuracy, compute_value_accuracy
from ..config import TrainingConfig, PolicyNormalization
from ..utils import checkpoint_filename, network_config_dict


logger = logging.getLogger(__name__)

ArrayLike = Union[np.ndarray, torch.Tensor]
Batch = Tuple[ArrayLike, ArrayLike, ArrayLike]


class Learner:
    """Training loop for the policy/value network.

    Handles:
    - Forward/backward passes
    - Learning rate scheduling
    - Checkpointing
    - Logging
    """

    def __init__(
        self,
        network: PVNetwork,
        config: Optional[TrainingConfig] = None,
        device: str = "cpu"
    ):
        """Initialize learner.

        Args:
            network: Neural network to train, normally built with training=True
            config: Training configuration
            device: Device to train on
        """
        self.network = network.to(device)
        self.config = config or TrainingConfig()
        self.device = device
        self.dtype = next(network.parameters()).dtype

        log_input = network.policy_normalization is PolicyNormalization.LOG_SOFTMAX
        if not log_input:
            logger.warning(
                "Training a network whose policy head uses softmax; "
                "build it with training=True for a log-softmax head"
            )

        # Optimizer: SGD with momentum (as in AlphaGo Zero paper)
        self.optimizer = optim.SGD(
            self.network.parameters(),
            lr=self.config.learning_rate,
            momentum=self.config.momentum,
            weight_decay=self.config.weight_decay
        )

        # Learning rate scheduler
        self.scheduler = optim.lr_scheduler.MultiStepLR(
            self.optimizer,
            milestones=self.config.lr_schedule_steps,
            gamma=self.config.lr_schedule_gamma
        )

        self.loss_fn = PVNetLoss(value_weight=self.config.value_weight, log_input=log_input)

        # Mixed precision training (CUDA only)
        self.use_amp = self.config.use_amp and torch.device(device).type == "cuda"
        self.scaler = GradScaler('cuda') if self.use_amp else None

        # Training state
        self.global_step = 0
        self.epoch = 0

        # Metrics history
        self.metrics_history = []

    def _to_tensor(self, array: ArrayLike) -> torch.Tensor:
        if isinstance(array, np.ndarray):
            array = torch.from_numpy(array)
        return array.to(self.device, dtype=self.dtype, non_blocking=True)

    def train_step(
        self,
        observations: ArrayLike,
        target_policies: ArrayLike,
        target_values: ArrayLike
    ) -> Dict[str, float]:
        """Execute a single training step.

        Args:
            observations: Batch of inputs (batch, in, S, S)
            target_policies: Search policies (batch, out, S, S) or (batch, out * S * S)
            target_values: Game outcomes (batch,) in [-1, 1]

        Returns:
            Dictionary of metrics
        """
        self.network.train()

        obs_tensor = self._to_tensor(observations)
        policy_tensor = self._to_tensor(target_policies)
        value_tensor = self._to_tensor(target_values)

        self.optimizer.zero_grad()

        if self.scaler is not None:
            with autocast('cuda'):
                policy_pred, value_pred = self.network(obs_tensor)
                loss, metrics = self.loss_fn(
                    policy_pred, policy_tensor,
                    value_pred, value_tensor
                )

            # Backward pass with gradient scaling
            self.scaler.scale(loss).backward()

            # Gradient clipping
            self.scaler.unscale_(self.optimizer)
            torch.nn.utils.clip_grad_norm_(
                self.network.parameters(),
                self.config.max_grad_norm
            )

            self.scaler.step(self.optimizer)
            self.scaler.update()
        else:
            policy_pred, value_pred = self.network(obs_tensor)
            loss, metrics = self.loss_fn(
                policy_pred, policy_tensor,
                value_pred, value_tensor
            )

            loss.backward()

            # Gradient clipping
            torch.nn.utils.clip_grad_norm_(
                self.network.parameters(),
                self.config.max_grad_norm
            )

            self.optimizer.step()

        with torch.no_grad():
            metrics['policy_accuracy'] = compute_policy_accuracy(policy_pred, policy_tensor)
            metrics['value_accuracy'] = compute_value_accuracy(value_pred, value_tensor)
            metrics['learning_rate'] = self.optimizer.param_groups[0]['lr']

        self.global_step += 1
        self.metrics_history.append(metrics)

        if (
            self.config.checkpoint_dir is not None
            and self.global_step % self.config.checkpoint_interval == 0
        ):
            filename = checkpoint_filename(self.global_step, self.network.config)
            self.save_checkpoint(str(Path(self.config.checkpoint_dir) / filename))

        return metrics

    def train_epoch(self, batches: Iterable[Batch]) -> Dict[str, float]:
        """Train for one epoch.

        Args:
            batches: Iterable of (observations, target_policies, target_values)

        Returns:
            Average metrics for the epoch
        """
        epoch_metrics = []

        for step, (observations, policies, values) in enumerate(batches):
            metrics = self.train_step(observations, policies, values)
            epoch_metrics.append(metrics)

            if (step + 1) % self.config.log_interval == 0:
                avg_metrics = self._average_metrics(epoch_metrics[-self.config.log_interval:])
                logger.info(
                    f"Step {self.global_step}: "
                    f"loss={avg_metrics['loss']:.4f}, "
                    f"policy_loss={avg_metrics['policy_loss']:.4f}, "
                    f"value_loss={avg_metrics['value_loss']:.4f}, "
                    f"policy_acc={avg_metrics['policy_accuracy']:.3f}"
                )

        # Update learning rate
        self.scheduler.step()
        self.epoch += 1

        return self._average_metrics(epoch_metrics)

    def _average_metrics(self, metrics_list) -> Dict[str, float]:
        """Average a list of metric dictionaries."""
        if not metrics_list:
            return {}

        avg = {}
        for key in metrics_list[0].keys():
            avg[key] = sum(m[key] for m in metrics_list) / len(metrics_list)
        return avg

    def save_checkpoint(self, path: str, extra_state: dict = None) -> None:
        """Save training checkpoint.

        Args:
            path: Path to save checkpoint
            extra_state: Additional state to save
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        state = {
            'global_step': self.global_step,
            'epoch': self.epoch,
            'network_state_dict': self.network.state_dict(),
            'optimizer_state_dict': self.optimizer.state_dict(),
            'scheduler_state_dict': self.scheduler.state_dict(),
            'network_config': network_config_dict(self.network.config),
        }

        if self.scaler is not None:
            state['scaler_state_dict'] = self.scaler.state_dict()

        if extra_state:
            state.update(extra_state)

        torch.save(state, path)
        logger.info(f"Saved checkpoint to {path}")

    def load_checkpoint(self, path: str) -> dict:
        """Load training checkpoint.

        Args:
            path: Path to checkpoint

        Returns:
            Extra state from checkpoint
        """
        state = torch.load(path, map_location=self.device, weights_only=False)

        self.global_step = state['global_step']
        self.epoch = state['epoch']
        self.network.load_state_dict(state['network_state_dict'])
        self.optimizer.load_state_dict(state['optimizer_state_dict'])
        self.scheduler.load_state_dict(state['scheduler_state_dict'])

        if self.scaler is not None and 'scaler_state_dict' in state:
            self.scaler.load_state_dict(state['scaler_state_dict'])

        logger.info(f"Loaded checkpoint from {path} (step {self.global_step})")

        known_keys = {
            'global_step', 'epoch', 'network_state_dict', 'optimizer_state_dict',
            'scheduler_state_dict', 'scaler_state_dict', 'network_config'
        }
        return {k: v for k, v in state.items() if k not in known_keys}

    def get_network_weights(self) -> dict:
        """Get network weights for distribution to evaluators."""
        return {k: v.cpu() for k, v in self.network.state_dict().items()}

    def set_network_weights(self, weights: dict) -> None:
        """Set network weights (e.g., from another process)."""
        self.network.load_state_dict(weights)
