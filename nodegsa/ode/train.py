"""Gradient-based fit of a neural ODE to an observed trajectory.

The loss is the sum of squared errors between the integrated trajectory and
the data, minimized with Adam over the whole state vector (initial condition
and network weights). The lowest-loss state seen during the run is restored
at the end.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
import pandas as pd
import torch

from .config import TrainingConfig
from .dynamics import state_array
from .network import NeuralODE, ODEFunc


@dataclass
class TrainingHistory:
    """Loss trace of a fit.

    Attributes:
        losses (list[float]): Loss after every iteration.
        best_state (np.ndarray): State vector with the lowest loss.
        best_loss (float): The lowest loss.
        stopped_early (bool): Whether the callback ended training.
    """
    losses: list[float] = field(default_factory=list)
    best_state: np.ndarray = None
    best_loss: float = float("inf")
    stopped_early: bool = False


def build_node(data: pd.DataFrame, config: TrainingConfig, state_names=None) -> NeuralODE:
    """Create an untrained neural ODE whose u0 starts at the first observation."""
    torch.manual_seed(config.seed)
    obs = state_array(data, state_names)
    func = ODEFunc(state_dim=obs.shape[1], hidden=config.hidden)
    return NeuralODE(func, obs[0])


def train(
    node: NeuralODE,
    data: pd.DataFrame,
    config: TrainingConfig = None,
    callback: Callable[[int, float, np.ndarray], bool] = None,
    state_names=None,
) -> TrainingHistory:
    """
    Fit a neural ODE to an observed trajectory with Adam.

    Args:
        node (NeuralODE): Model to train in place.
        data (pd.DataFrame): Observations with a 't' column and state columns.
        config (TrainingConfig, optional): Training settings. Defaults to
            `TrainingConfig()`.
        callback (Callable, optional): Called as callback(iteration, loss,
            prediction) after every step. Returning True stops training.
        state_names (Sequence[str], optional): State columns of data.
            Defaults to every column except 't'.

    Returns:
        TrainingHistory: Loss trace and best state. The best state is loaded
            into `node` before returning.

    Raises:
        FloatingPointError: If the loss becomes non-finite.
    """
    config = config or TrainingConfig()
    t = torch.as_tensor(data["t"].to_numpy(), dtype=torch.float64)
    target = torch.as_tensor(state_array(data, state_names), dtype=torch.float64)

    optimizer = torch.optim.Adam(node.parameters(), lr=config.learning_rate)
    history = TrainingHistory()

    logging.info(f"Training neural ODE with {node.state_dim + node.num_weights()} parameters.")
    for it in range(1, config.maxiters + 1):
        optimizer.zero_grad()
        pred = node(t, method=config.method, rtol=config.rtol, atol=config.atol)
        loss = torch.sum((pred - target) ** 2)

        value = loss.item()
        if not np.isfinite(value):
            raise FloatingPointError(f"Non-finite loss at iteration {it}")

        # Loss belongs to the parameters before this step
        if value < history.best_loss:
            history.best_loss = value
            history.best_state = node.state_vector()

        loss.backward()
        optimizer.step()
        history.losses.append(value)

        if config.log_every and it % config.log_every == 0:
            logging.info(f"Iteration {it}: loss = {value:.6f}")

        if callback is not None and callback(it, value, pred.detach().numpy()):
            logging.info(f"Training stopped by callback at iteration {it}.")
            history.stopped_early = True
            break

    if history.best_state is not None:
        node.load_state_vector(history.best_state)
        logging.info(f"Best training loss: {history.best_loss:.6f}")
    return history
