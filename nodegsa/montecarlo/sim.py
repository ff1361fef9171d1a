"""Monte Carlo propagation of parameter uncertainty with quasi-random sampling.

This module provides the Sim class, which samples selected entries of the
state vector of a trained neural ODE (initial condition and network weights)
with Sobol, Latin Hypercube or Halton designs, optionally correlates them
through a Gaussian copula, solves the resulting ensemble of trajectories and
summarizes it per time point.

Typical usage example:

```python
    from nodegsa import NeuralODEModel
    from nodegsa.montecarlo import MonteCarloConfig, Sim

    model = NeuralODEModel.from_data(node, data)
    config = MonteCarloConfig.from_json("mc_config.json")
    sim = Sim(model, config, run_kwargs={"method": "dopri5"})
    results = sim.run(n=1024, parallel=True)
    stats = sim.analyze(results, index_columns=["t"])
```
"""

# Model running
from ..model import Model
from .config import MonteCarloConfig
from ..utils.results import StatsResults
from ..utils.copula import GaussianCopula, equicorrelation

# Data
import pandas as pd
import numpy as np

# Distributions and Sampling
from scipy.stats import qmc

# Typing
from typing import Literal

# Logging
import logging

# Plotting
import matplotlib.pyplot as plt


class Sim:
    """Monte Carlo simulation runner with configurable sampling engines.

    Attributes:
        space (dict[str, rv_frozen]): Parameter names mapped to their
            marginal distributions.
        outputs (list[str] | None): Trajectory columns to keep.
        copula (GaussianCopula | None): Dependence of the sampled parameters.
        model (Model): The model executed for each sample.
        run_kwargs (dict): Arguments passed to the model during execution.
        seed (int): Random seed for reproducibility.
        rng (np.random.Generator): Random number generator instance.
        engine: Quasi-random sampling engine instance (Sobol, LatinHypercube,
            or Halton).
    """

    def __init__(
        self,
        model: Model,
        config: MonteCarloConfig,
        run_kwargs: dict = None,
        engine_kwargs: dict = None,
        engine: Literal['sobol', 'latin', 'halton'] = 'sobol',
        **kwargs
    ):
        """Initializes the Sim with model, configuration, and sampling settings.

        Args:
            model (Model): The model instance to run simulations on. Must
                implement run() and run_parallel() methods.
            config (MonteCarloConfig): Parameter space, correlation and outputs.
            run_kwargs (dict, optional): Keyword arguments for the model's run
                method. 'return_on_fail' defaults to True.
            engine_kwargs (dict, optional): Additional arguments for the
                sampling engine initialization.
            engine (Literal['sobol', 'latin', 'halton'], optional): Type of
                quasi-random sampling engine to use. Defaults to 'sobol'.
            **kwargs: Additional keyword arguments including:
                seed (int): Random seed for reproducibility. Defaults to 42.

        Raises:
            ValueError: If the space is empty, the engine is unknown or the
                correlation does not fit the number of parameters.
        """
        if not config.space:
            raise ValueError("Monte Carlo configuration needs a non-empty parameter space")

        self.space = config.space.get_distributions()
        self.outputs = config.outputs
        self.model = model
        self.run_kwargs = dict(run_kwargs) if run_kwargs is not None else {}

        # Ensure return_on_fail is passed in kwargs
        self.run_kwargs["return_on_fail"] = self.run_kwargs.get("return_on_fail", True)

        self.copula = self._get_copula(config.correlation, len(self.space))

        self.seed: int = kwargs.get("seed", 42)
        self.rng = np.random.default_rng(self.seed)
        self.engine = self._get_engine(
            engine,
            d=len(self.space),
            rng=self.rng,
            **(engine_kwargs or {})
        )

    @staticmethod
    def _get_copula(correlation, d: int) -> GaussianCopula | None:
        if correlation is None:
            return None
        if np.isscalar(correlation):
            if correlation == 0:
                return None
            return GaussianCopula(equicorrelation(d, float(correlation)))
        copula = GaussianCopula(correlation)
        if copula.dim != d:
            raise ValueError(
                f"Correlation matrix is {copula.dim}x{copula.dim} for {d} sampled parameters"
            )
        return copula

    @staticmethod
    def _get_engine(engine: str, **kwargs):
        """Creates and returns the specified quasi-random sampling engine.

        Args:
            engine (str): One of 'sobol', 'latin', or 'halton'.
            **kwargs: Passed to the engine constructor ('d', 'rng', ...).

        Returns:
            qmc.QMCEngine: The sampling engine.

        Raises:
            ValueError: If the specified engine type is not supported.
        """
        match engine:
            case 'sobol':
                return qmc.Sobol(**kwargs)
            case 'latin':
                return qmc.LatinHypercube(**kwargs)
            case 'halton':
                return qmc.Halton(**kwargs)
            case _:
                raise ValueError(f"Unknown sampling engine: {engine}")

    def _sample_from_space(self, n: int, workers: int) -> list[dict[str, float]]:
        """Generates parameter samples from the defined space.

        Uniform design points are correlated through the copula (if any) and
        transformed with each parameter's inverse cumulative distribution
        function (ppf).

        Args:
            n (int): Number of samples. For the Sobol engine, must be a
                power of 2.
            workers (int): Worker threads for engines that support them.

        Returns:
            list[dict[str, float]]: One parameter dictionary per sample.

        Raises:
            ValueError: If using the Sobol engine and n is not a power of 2.
        """
        if not isinstance(self.engine, qmc.Sobol):
            samples = self.engine.random(n, workers=workers)  # (n, dim)
        else:
            if n < 1 or np.log2(n) % 1 != 0:
                raise ValueError(f"Sobol sampling needs a power of 2 samples, got {n}")
            samples = self.engine.random_base2(m=int(np.log2(n)))  # (n, dim)

        if self.copula is not None:
            samples = self.copula.from_uniform(samples)

        # Transform uniform samples to parameter distributions using inverse CDF
        params = list(self.space.keys())
        param_values = {
            param: self.space[param].ppf(samples[:, i])
            for i, param in enumerate(params)
        }  # (dim, n)

        # Reorganize into list of parameter dictionaries for model execution
        samples = [
            {name: float(param_values[name][i]) for name in params}
            for i in range(n)
        ]  # (n, dim)

        return samples

    def run(
        self,
        n: int = 1024,
        parallel: bool = True,
        workers: int = 4,
        X: dict[str, float] = None
    ) -> list[pd.DataFrame | None]:
        """Executes the Monte Carlo simulation.

        Args:
            n (int, optional): Number of samples. For the Sobol engine, must
                be a power of 2. Defaults to 1024.
            parallel (bool, optional): Run the ensemble on worker threads.
                Defaults to True.
            workers (int, optional): Number of worker threads. Defaults to 4.
            X (dict[str, float], optional): Fixed values for parameters that
                are not sampled. Sampled values take precedence.

        Returns:
            list[pd.DataFrame | None]: One trajectory per sample, in sample
                order. Failed runs are None.

        Raises:
            ValueError: If using the Sobol engine and n is not a power of 2.
        """

        samples = self._sample_from_space(n, workers)  # (n, dim)

        if X:  # Apply default parameter overrides if provided
            samples = [dict(X, **sample) for sample in samples]

        logging.info(f"Running {n} Monte Carlo samples.")
        if parallel:
            results = self.model.run_parallel(X=samples, workers=workers, **self.run_kwargs)
        else:
            results = []
            for sample in samples:
                results.append(self.model.run(X=sample, **self.run_kwargs))

        failed = sum(result is None for result in results)
        if failed:
            logging.warning(f"{failed} of {n} Monte Carlo runs failed.")

        if self.outputs:
            results = [
                None if result is None
                else result[[c for c in result.columns if c == "t" or c in self.outputs]]
                for result in results
            ]

        return results

    def analyze(
        self,
        results: list[pd.DataFrame | None],
        index_columns: list[str]
    ) -> StatsResults:
        """Analyzes simulation results to compute summary statistics.

        Args:
            results (list[pd.DataFrame | None]): Trajectories from `run`.
                None values (from failed runs) are excluded.
            index_columns (list[str]): Columns copied unchanged from the first
                successful result, such as the time column.

        Returns:
            StatsResults: DataFrames 'ci_low', 'ci_high' (95% quantile band),
                'mean', 'stddev', 'stderr', 'min_val' and 'max_val'.

        Raises:
            ValueError: If every run failed.
        """
        # Final N may be smaller than originally requested due to failures
        valid = [result for result in results if result is not None]
        if not valid:
            raise ValueError("All Monte Carlo runs failed, nothing to analyze")

        columns = valid[0].columns
        data = np.array([result.to_numpy(dtype=float) for result in valid])  # N x T x D

        T = data.shape[1]  # Time steps
        D = data.shape[2]  # Variables

        # Convert to set for efficient membership testing
        index_columns = set(index_columns)

        stats = {
            "ci_low": np.empty((T, D)),
            "ci_high": np.empty((T, D)),
            "mean": np.empty((T, D)),
            "stddev": np.empty((T, D)),
            "stderr": np.empty((T, D)),
            "min_val": np.empty((T, D)),
            "max_val": np.empty((T, D)),
        }

        for i, output in enumerate(columns):

            # Copy index column data from first result (assumed constant)
            if output in index_columns:

                for key in stats.keys():
                    stats[key][:, i] = data[0, :, i]

            else:
                # Compute statistics across simulation runs (axis=0)
                vals = data[:, :, i]

                stats["ci_low"][:, i] = np.quantile(vals, 0.025, axis=0)
                stats["ci_high"][:, i] = np.quantile(vals, 0.975, axis=0)
                stats["mean"][:, i] = np.mean(vals, axis=0)
                if vals.shape[0] > 1:
                    stats["stddev"][:, i] = np.std(vals, axis=0, ddof=1)  # Sample std dev
                else:
                    stats["stddev"][:, i] = 0.0
                stats["stderr"][:, i] = stats["stddev"][:, i] / np.sqrt(vals.shape[0])
                stats["min_val"][:, i] = np.min(vals, axis=0)
                stats["max_val"][:, i] = np.max(vals, axis=0)

        stats_res = {
            key: pd.DataFrame(val, columns=columns)
            for key, val in stats.items()
        }

        return StatsResults(stats_res)

    @staticmethod
    def plot_ci(stats: StatsResults, outputs: list[str], outfile: str = None, time: str = "t"):
        """Plots the mean and 95% band of each output over time.

        Args:
            stats (StatsResults): Result of `analyze`.
            outputs (list[str]): Columns to plot, one panel each.
            outfile (str, optional): Save the figure here and close it.
                When omitted the figure is left open for the caller.
            time (str): Name of the time column. Defaults to 't'.

        Returns:
            matplotlib.figure.Figure: The figure.
        """
        fig, axes = plt.subplots(len(outputs), 1, figsize=(10, 4 * len(outputs)), sharex=True,
                                 squeeze=False)
        t = stats["mean"][time]

        for ax, output in zip(axes[:, 0], outputs):
            ax.plot(t, stats["mean"][output], label="Mean")
            ax.fill_between(t, stats["ci_low"][output], stats["ci_high"][output],
                            color="lightblue", alpha=0.5, label="95% CI")
            ax.set_title(f"95% Confidence Interval for {output}")
            ax.set_ylabel(output)
            ax.legend()
            ax.grid(True)

        axes[-1, 0].set_xlabel(time)
        fig.tight_layout()

        if outfile is not None:
            fig.savefig(outfile)
            plt.close(fig)

        return fig
