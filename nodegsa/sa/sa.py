"""Sensitivity analysis workflow for trained neural ODEs.

This module ties the pieces together: it places an input distribution around
the trained state vector, estimates Shapley effects (or Sobol indices) of the
training loss with respect to every entry of that vector, and saves the
numbers and figures.

Features:
    - Normal or uniform marginals centred on the trained values
    - Equicorrelated Gaussian copula for dependent parameter uncertainty
    - Batched loss evaluation, many perturbed networks per odeint call
    - Fit metrics of the trained model against the observations
    - Automated visualization and result saving

Typical usage example:

    from nodegsa import NeuralODEModel
    from nodegsa.sa import SensitivityAnalysis, SensitivityAnalysisConfig

    model = NeuralODEModel.from_data(node, data)
    config = SensitivityAnalysisConfig.from_json("sa_config.json")
    sa = SensitivityAnalysis(model, config)
    result = sa.run("output_directory")
"""

# Model and config
from ..model import NeuralODEModel
from .config import SensitivityAnalysisConfig
from .shapley import Shapley, gsa
from .sobol import Sobol

from ..utils.copula import CopulaDistribution, GaussianCopula, equicorrelation
from ..utils.distributions import get_scipy_normal, get_scipy_uniform
from ..utils.results import ShapleyResult, SobolResult

# Plotting
import matplotlib.pyplot as plt

# Logging
import logging

# Data and saving
from dataclasses import asdict
import pandas as pd
import numpy as np
import os
import json


class SensitivityAnalysis:
    """Global sensitivity analysis of the training loss of a neural ODE.

    Attributes:
        model (NeuralODEModel): Trained model with ground truth data.
        config (SensitivityAnalysisConfig): Method, distribution and
            execution settings.

    Example:
        ```python
        sa = SensitivityAnalysis(model, SensitivityAnalysisConfig(correlation=0.09))
        result = sa.run("results/")
        ```
    """

    def __init__(
        self,
        model: NeuralODEModel,
        config: SensitivityAnalysisConfig,
    ):
        self.model = model
        self.config = config

    def input_distribution(self) -> CopulaDistribution:
        """Joint distribution of the state vector around its trained value.

        Every entry gets a marginal centred on its trained value whose spread
        is `scale` times the magnitude of the value (at least 1e-3, so zero
        weights still vary). A nonzero `correlation` couples all entries
        through an equicorrelated Gaussian copula.

        Returns:
            CopulaDistribution: The input distribution.

        Raises:
            ValueError: If the marginal name is unknown or the correlation
                is not valid for the number of inputs.
        """
        theta = self.model.theta
        spread = self.config.scale * np.maximum(np.abs(theta), 1e-3)

        marginal = self.config.marginal.lower()
        if marginal == "normal":
            marginals = [get_scipy_normal(v, s) for v, s in zip(theta, spread)]
        elif marginal == "uniform":
            marginals = [get_scipy_uniform(v - s, v + s) for v, s in zip(theta, spread)]
        else:
            raise ValueError(f"Unknown marginal for sensitivity analysis: {self.config.marginal}")

        copula = None
        if self.config.correlation != 0.0:
            copula = GaussianCopula(equicorrelation(len(theta), self.config.correlation))

        return CopulaDistribution(marginals, copula)

    def _get_method(self):
        method = self.config.method.lower()
        if method == "shapley":
            return Shapley(**asdict(self.config.shapley), seed=self.config.seed)
        if method == "sobol":
            if self.config.correlation != 0.0:
                raise ValueError("Sobol indices require uncorrelated inputs (correlation = 0)")
            return Sobol(n_samples=self.config.samples, seed=self.config.seed)
        raise ValueError(f"Unknown sensitivity analysis method: {self.config.method}")

    def _evaluate_fit(self, res_dir: str, plt_dir: str):
        """Save fit metrics and the fit figure of the trained model."""
        output = self.model.run(**self.model.run_kwargs)
        plot_fit(self.model.ground, output, os.path.join(plt_dir, "fit.png"))

        if self.config.metric is None:
            return

        errors = self.model.evaluate_model(
            output,
            metric_config=self.config.metric,
            **self.model.eval_kwargs
        )
        for name, value in errors.items():
            logging.info(f"Trained model {name}: {value:.6g}")

        with open(os.path.join(res_dir, "fit.json"), "+x") as f:
            json.dump(errors, f, indent=4)

    def _check_previous_results(self, res_dir: str):
        """Raise before any work if this run would collide with saved results."""
        if self.config.method.lower() == "sobol":
            names = ["sobol_indices.csv"]
        else:
            names = ["shapley_effects.json", "shapley_effects.csv"]
        if self.config.metric is not None:
            names.append("fit.json")

        for name in names:
            path = os.path.join(res_dir, name)
            if os.path.exists(path):
                raise FileExistsError(f"Results from a previous run exist: {path}")

    def run(self, out_dir: str) -> ShapleyResult | SobolResult:
        """Execute the complete sensitivity analysis workflow.

        Args:
            out_dir (str): Output directory. 'plots' and 'sa_results'
                subdirectories are created inside it.

        Returns:
            ShapleyResult | SobolResult: Result of the configured method.

        Raises:
            ValueError: If the model has no ground truth or the configuration
                is invalid.
            FileExistsError: If result files from a previous run exist.

        The method creates the following directory structure:
        - {out_dir}/plots/: fit.png and the effect bar chart (PNG format)
        - {out_dir}/sa_results/: Numerical results (CSV, JSON and NPY files)
        """

        plt_dir = os.path.join(out_dir, "plots")
        res_dir = os.path.join(out_dir, "sa_results")

        logging.info(f"Plots will be saved in: {plt_dir}")
        logging.info(f"Results will be saved in: {res_dir}")

        os.makedirs(plt_dir, exist_ok=True)
        os.makedirs(res_dir, exist_ok=True)

        if self.model.ground is None:
            raise ValueError("Sensitivity analysis of the loss needs ground truth data")

        self._check_previous_results(res_dir)
        self._evaluate_fit(res_dir, plt_dir)

        method = self._get_method()
        distribution = self.input_distribution()

        logging.info(
            f"Running {self.config.method} analysis of {self.model.num_vars} parameters."
        )
        result = gsa(
            self.model.get_loss_function(),
            method,
            distribution,
            batch=True,
            names=self.model.names,
        )

        if isinstance(result, ShapleyResult):
            result.to_frame().to_csv(os.path.join(res_dir, "shapley_effects.csv"), index=False)
            result.to_json(os.path.join(res_dir, "shapley_effects.json"))
            np.save(os.path.join(res_dir, "shapley_effects.npy"), result.shapley_effects)
            np.save(os.path.join(res_dir, "shapley_std_errors.npy"), result.std_errors)
            plot_shapley_effects(
                result,
                outfile=os.path.join(plt_dir, "shapley_effects.png"),
                top=self.config.top,
            )
        else:
            result.to_frame().to_csv(os.path.join(res_dir, "sobol_indices.csv"), index=False)
            np.save(os.path.join(res_dir, "first_order_indices.npy"), result.first_order)
            np.save(os.path.join(res_dir, "total_order_indices.npy"), result.total_order)
            plot_sobol_indices(
                result,
                outfile=os.path.join(plt_dir, "sobol_indices.png"),
                top=self.config.top,
            )

        return result


def plot_shapley_effects(
    result: ShapleyResult,
    outfile: str = None,
    top: int = None,
    ax=None,
):
    """
    Bar chart of Shapley effects with confidence interval error bars.

    Args:
        result (ShapleyResult): Effects to plot.
        outfile (str, optional): Save the figure here and close it.
        top (int, optional): Only plot the `top` largest effects.
        ax (matplotlib.axes.Axes, optional): Axes to draw on. A new figure
            is created when omitted.

    Returns:
        matplotlib.axes.Axes: The axes drawn on.
    """
    if top is not None:
        frame = result.top(top)
    else:
        frame = result.to_frame().sort_values("shapley_effect", ascending=False)

    if ax is None:
        width = max(6.0, 0.25 * len(frame))
        _, ax = plt.subplots(figsize=(width, 5))

    effects = frame["shapley_effect"].to_numpy()
    yerr = np.vstack([
        effects - frame["ci_lower"].to_numpy(),
        frame["ci_upper"].to_numpy() - effects,
    ])

    x = np.arange(len(frame))
    ax.bar(x, effects, yerr=yerr, capsize=2)
    ax.set_xticks(x)
    ax.set_xticklabels(frame["name"], rotation=90)
    ax.set_ylabel("Shapley effect")
    ax.set_title("Shapley effects")
    ax.grid(True, axis="y")

    if outfile is not None:
        fig = ax.get_figure()
        fig.tight_layout()
        fig.savefig(outfile)
        plt.close(fig)

    return ax


def plot_sobol_indices(
    result: SobolResult,
    outfile: str = None,
    top: int = None,
):
    """Grouped bar chart of first- and total-order indices, largest ST first."""
    frame = result.to_frame().sort_values("ST", ascending=False)
    if top is not None:
        frame = frame.head(top)

    x = np.arange(len(frame))
    fig, ax = plt.subplots(figsize=(max(6.0, 0.3 * len(frame)), 5))
    ax.bar(x - 0.2, frame["S1"], width=0.4, yerr=frame["S1_conf"], label="First order")
    ax.bar(x + 0.2, frame["ST"], width=0.4, yerr=frame["ST_conf"], label="Total order")
    ax.set_xticks(x)
    ax.set_xticklabels(frame["name"], rotation=90)
    ax.set_ylabel("Sobol Index")
    ax.legend()
    ax.grid(True, axis="y")

    if outfile is not None:
        fig.tight_layout()
        fig.savefig(outfile)
        plt.close(fig)

    return ax


def plot_fit(data: pd.DataFrame, prediction: pd.DataFrame, outfile: str):
    """Scatter the observations and draw the predicted trajectory of each state."""
    fig, ax = plt.subplots(figsize=(10, 6))

    for name in [c for c in data.columns if c != "t"]:
        ax.scatter(data["t"], data[name], label=f"{name} data")
        if prediction is not None:
            ax.plot(prediction["t"], prediction[name], label=f"{name} prediction")

    ax.set_xlabel("t")
    ax.set_ylabel("State")
    ax.legend()
    ax.grid(True)

    fig.tight_layout()
    fig.savefig(outfile)
    plt.close(fig)
