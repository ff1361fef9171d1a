"""
# Model Interface and Neural ODE Implementation

This module provides the abstract model interface used by the sensitivity
analysis and Monte Carlo tools, and its concrete implementation for a trained
neural ODE.

## Classes

- `Model`: Abstract base class defining the interface for all models
- `NeuralODEModel`: Trained neural ODE evaluated at perturbed state vectors

## Key Features

- **Threaded Ensembles**: Independent trajectory solves across worker threads
- **Vectorized Ensembles**: Thousands of perturbed state vectors per odeint call
- **Model Evaluation**: Fit metrics against the observed trajectory
- **Loss Function**: Sum of squared errors, the scalar output analyzed by GSA

## Example Usage

```python
from nodegsa import NeuralODEModel
from nodegsa.ode import generate_data, build_node, train, TrainingConfig

data = generate_data()
config = TrainingConfig()
node = build_node(data, config)
train(node, data, config)

model = NeuralODEModel.from_data(node, data, run_kwargs={'method': 'dopri5'})

# Single trajectory with one weight overridden
traj = model.run(X={'net.2.bias[1]': 0.1})

# Threaded ensemble
trajs = model.run_parallel([{'u0[1]': 1.9}, {'u0[1]': 2.1}], workers=4)

# Loss of many perturbed state vectors at once
losses = model.batched_loss(samples)   # samples: (n, model.num_vars)
```
"""

# Basic data utils
import pandas as pd
import numpy as np
from typing import Callable, Any
from numpy.typing import ArrayLike
from abc import abstractmethod, ABC

# Logging
import logging

# Neural ODE
import copy
import torch
from functools import partial

from nodegsa.config import MetricConfig
from nodegsa.utils.results import EvalResults
from nodegsa.ode.network import NeuralODE

# Parallel runs
from tqdm import tqdm
from queue import Queue
from concurrent.futures import ThreadPoolExecutor, as_completed


class Model(ABC):
    """
    Abstract base class for models analyzed by nodegsa.

    Attributes:
        run_kwargs (dict): Keyword arguments passed to model execution methods.
        eval_kwargs (dict): Keyword arguments passed to model evaluation methods.
    """
    def __init__(
            self,
            run_kwargs: dict = None,
            eval_kwargs: dict = None,
    ):
        self.run_kwargs = run_kwargs if run_kwargs is not None else {}
        self.eval_kwargs = eval_kwargs if eval_kwargs is not None else {}

    @abstractmethod
    def run_parallel(self, X: list = None, workers: int = 4, **kwargs) -> list[ArrayLike | None]:
        """
        Execute the model with multiple parameter sets in parallel.

        Returns:
            list[ArrayLike | None]: One output per parameter set, in input
                order. None marks a failed run.
        """
        pass

    @abstractmethod
    def run(self, X: Any = None, **kwargs) -> ArrayLike | None:
        """
        Execute the model with a single parameter set.

        Returns:
            ArrayLike | None: Model output, or None if the run failed.
        """
        pass

    @abstractmethod
    def solve(self, *args, **kwargs) -> ArrayLike:
        """
        Low-level model execution, called by `run` and the batched paths.
        """
        pass

    @staticmethod
    @abstractmethod
    def evaluate_model(*args, **kwargs) -> EvalResults:
        """
        Evaluate model output against ground truth data.

        Returns:
            EvalResults: Dictionary mapping metric names to computed values.
        """
        pass

    def get_objective(self) -> Callable:
        """
        Partial of `run` with run_kwargs already bound.

        Example:
            ```python
            objective = model.get_objective()
            traj = objective(X={'u0[1]': 2.05})
            ```
        """
        return partial(
            self.run,
            **self.run_kwargs
        )


class NeuralODEModel(Model):
    """
    Trained neural ODE evaluated at arbitrary state vectors.

    The state vector `theta` concatenates the initial condition and the
    network weights. Every run accepts either nothing (the trained vector),
    a full vector, or a dict of name -> value overrides of the trained vector.

    Attributes:
        node (NeuralODE): The trained neural ODE.
        t (torch.Tensor): Output time grid.
        ground (pd.DataFrame | None): Observed trajectory on the same grid.
        state_names (list[str]): Column names of the state variables.
        names (list[str]): One label per state-vector entry.
        theta (np.ndarray): Trained state vector.
        batch_size (int): Rows per vectorized odeint call.
        run_kwargs (dict): Solver settings ('method', 'rtol', 'atol', 'options').
        eval_kwargs (dict): Evaluation settings ('ground', 'metric_config').
    """
    def __init__(
            self,
            node: NeuralODE,
            t,
            ground: pd.DataFrame = None,
            state_names: tuple[str, ...] = ("u1", "u2"),
            run_kwargs: dict = None,
            eval_kwargs: dict = None,
            batch_size: int = 1024,
    ):
        super().__init__(run_kwargs=run_kwargs, eval_kwargs=eval_kwargs)

        if len(state_names) != node.state_dim:
            raise ValueError(
                f"Got {len(state_names)} state names for a {node.state_dim}-dimensional state"
            )
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.node = node
        self.t = torch.as_tensor(np.asarray(t, dtype=float), dtype=torch.float64)
        self.ground = ground
        self.state_names = list(state_names)
        self.batch_size = batch_size

        self.names = node.parameter_names()
        self.theta = node.state_vector()
        self._index = {name: i for i, name in enumerate(self.names)}

        if ground is not None and "ground" not in self.eval_kwargs:
            self.eval_kwargs["ground"] = ground

    @classmethod
    def from_data(cls, node: NeuralODE, data: pd.DataFrame, **kwargs):
        """Build a model whose time grid and ground truth come from `data`."""
        state_names = [c for c in data.columns if c != "t"]
        return cls(
            node,
            data["t"].to_numpy(),
            ground=data,
            state_names=state_names,
            **kwargs
        )

    @property
    def num_vars(self) -> int:
        return len(self.theta)

    def _resolve(self, X) -> np.ndarray:
        """Turn None, a dict of overrides, or a full vector into a state vector."""
        if X is None:
            return self.theta.copy()

        if isinstance(X, dict):
            theta = self.theta.copy()
            for name, value in X.items():
                if name not in self._index:
                    raise KeyError(f"Unknown parameter: {name}")
                theta[self._index[name]] = value
            return theta

        theta = np.asarray(X, dtype=float).ravel()
        if theta.size != self.num_vars:
            raise ValueError(f"State vector must have {self.num_vars} entries, got {theta.size}")
        return theta

    def _to_frame(self, traj: np.ndarray) -> pd.DataFrame:
        out = pd.DataFrame(traj, columns=self.state_names)
        out.insert(0, "t", self.t.numpy())
        return out

    def _ground_array(self) -> np.ndarray:
        if self.ground is None:
            raise ValueError("A ground truth trajectory is required to compute the loss")
        return self.ground[self.state_names].to_numpy(dtype=float)

    def solve(
        self,
        theta_batch: np.ndarray,
        method: str = "dopri5",
        node: NeuralODE = None,
        **kwargs
    ) -> np.ndarray:
        """
        Integrate one trajectory per row, `batch_size` rows per odeint call.

        Args:
            theta_batch (np.ndarray): State vectors, shape (n, num_vars).
            method (str): torchdiffeq solver name.
            node (NeuralODE, optional): Replica to integrate with. Defaults to
                the trained node; threads must each pass their own replica
                because the vectorized derivative reparametrizes the module.
            **kwargs: Forwarded to `torchdiffeq.odeint`.

        Returns:
            np.ndarray: Trajectories of shape (n, T, S).

        Raises:
            Exception: Whatever the solver raises for a failing chunk.
        """
        node = node if node is not None else self.node
        theta_batch = np.atleast_2d(np.asarray(theta_batch, dtype=float))
        n = theta_batch.shape[0]
        out = np.empty((n, len(self.t), len(self.state_names)))

        for start in range(0, n, self.batch_size):
            stop = min(start + self.batch_size, n)
            out[start:stop] = node.simulate(
                theta_batch[start:stop], self.t, method=method, **kwargs
            )

        return out

    def run(
        self,
        X: dict[str, float] | np.ndarray = None,
        method: str = "dopri5",
        return_on_fail: bool = False,
        node: NeuralODE = None,
        **kwargs
    ) -> pd.DataFrame | None:
        """
        Solve a single trajectory.

        Args:
            X (dict[str, float] | np.ndarray, optional): Overrides of the
                trained state vector, or a full state vector.
            method (str): torchdiffeq solver name.
            return_on_fail (bool): Return None instead of raising when the
                solver fails or the trajectory is not finite.
            node (NeuralODE, optional): Replica to integrate with, see `solve`.
            **kwargs: Forwarded to `torchdiffeq.odeint`.

        Returns:
            pd.DataFrame | None: Columns 't' and the state variables.

        Raises:
            KeyError: If X names an unknown parameter.
            FloatingPointError: If the trajectory is not finite and
                return_on_fail is False.
        """
        theta = self._resolve(X)

        try:
            traj = self.solve(theta[None, :], method=method, node=node, **kwargs)[0]
            if not np.all(np.isfinite(traj)):
                raise FloatingPointError("Trajectory contains non-finite values")
        except Exception as e:
            if not return_on_fail:
                raise
            logging.warning(f"Neural ODE solve failed: {e}")
            return None

        return self._to_frame(traj)

    def run_parallel(
        self,
        X: list = None,
        workers: int = 4,
        **kwargs
    ) -> list[pd.DataFrame | None]:
        """
        Solve an ensemble of trajectories across worker threads.

        Args:
            X (list): Parameter sets, each accepted by `run`.
            workers (int): Number of concurrent worker threads. Defaults to 4.
            **kwargs: Forwarded to `run`.

        Returns:
            list[pd.DataFrame | None]: Trajectories in input order. Failed
                runs are logged and returned as None.
        """
        N = len(X)
        res = [None for _ in range(N)]

        # One private copy of the network per worker
        replicas = Queue()
        for _ in range(workers):
            replicas.put(copy.deepcopy(self.node))

        def member(x):
            node = replicas.get()
            try:
                return self.run(X=x, node=node, **kwargs)
            finally:
                replicas.put(node)

        pbar = tqdm(total=N)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(member, X[i]): i
                for i in range(N)
            }

            for future in as_completed(futures):
                pbar.update(1)
                idx = futures[future]
                try:
                    res[idx] = future.result()
                except Exception as e:
                    logging.error(f"Ensemble member {idx} failed: {e}")

        pbar.close()

        return res

    def batched_loss(
        self,
        X: np.ndarray,
        method: str = "dopri5",
        return_on_fail: bool = True,
        **kwargs
    ) -> np.ndarray:
        """
        Sum of squared errors against the ground truth for many state vectors.

        Rows are solved `batch_size` at a time. When a vectorized chunk fails
        (one diverging member stalls the shared adaptive step), its members
        are solved one by one so only the diverging ones are lost.

        Args:
            X (np.ndarray): State vectors, shape (n, num_vars).
            method (str): torchdiffeq solver name.
            return_on_fail (bool): Report failed members as NaN instead of raising.
            **kwargs: Forwarded to `torchdiffeq.odeint`.

        Returns:
            np.ndarray: Loss per row, shape (n,).
        """
        X = np.atleast_2d(np.asarray(X, dtype=float))
        if X.shape[1] != self.num_vars:
            raise ValueError(f"Expected {self.num_vars} columns, got {X.shape[1]}")

        ground = self._ground_array()
        n = X.shape[0]
        losses = np.full(n, np.nan)

        for start in range(0, n, self.batch_size):
            stop = min(start + self.batch_size, n)
            try:
                traj = self.node.simulate(X[start:stop], self.t, method=method, **kwargs)
                losses[start:stop] = np.sum((traj - ground) ** 2, axis=(1, 2))
            except Exception as e:
                if not return_on_fail:
                    raise
                logging.warning(
                    f"Vectorized solve of rows {start}-{stop} failed ({e}), "
                    "solving members separately."
                )
                for i in range(start, stop):
                    try:
                        traj = self.node.simulate(X[i:i + 1], self.t, method=method, **kwargs)
                        losses[i] = np.sum((traj[0] - ground) ** 2)
                    except Exception as member_error:
                        logging.error(f"Solve for sample {i} failed: {member_error}")

        bad = ~np.isfinite(losses)
        if bad.any():
            if not return_on_fail:
                raise FloatingPointError(f"{bad.sum()} samples produced a non-finite loss")
            losses[bad] = np.nan

        return losses

    def loss(self, X=None, **kwargs) -> float:
        """Loss of a single state vector (or overrides, see `run`)."""
        return float(self.batched_loss(self._resolve(X)[None, :], **kwargs)[0])

    def get_loss_function(self) -> Callable:
        """Batched loss with run_kwargs bound, ready for `gsa(..., batch=True)`."""
        return partial(
            self.batched_loss,
            **self.run_kwargs
        )

    @staticmethod
    def evaluate_model(
        output: pd.DataFrame | None,
        ground: pd.DataFrame,
        metric_config: MetricConfig,
    ) -> EvalResults:
        """
        Evaluate a trajectory against the observed data.

        Args:
            output (pd.DataFrame | None): Trajectory from `run`. None gives
                penalty values for all metrics.
            ground (pd.DataFrame): Observations on the same time grid.
            metric_config (MetricConfig): Metrics to compute.

        Returns:
            EvalResults: Metric names to values. Failed runs get 1e20 for
                'min' metrics and -1e20 for 'max' metrics.

        Note:
            Missing observations (NaN) are dropped and predictions are
            aligned with the remaining rows by index.
        """
        errors = {}
        for metric, mode in zip(metric_config.metrics, metric_config.modes):

            if output is None:
                err = 1e20 if mode == 'min' else -1e20
            else:
                col_ground = ground[metric.output_name].dropna()
                ground_values = col_ground.to_numpy(dtype=float)
                pred_values = output.loc[col_ground.index, metric.output_name].to_numpy(dtype=float)
                err = float(metric.func(ground_values, pred_values))

            errors[metric.name] = err

        return errors
