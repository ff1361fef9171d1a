"""Configuration classes for sensitivity analysis settings.

This module provides configuration classes for managing sensitivity analysis
parameters including SALib problem definitions, Shapley estimator settings
and the workflow options of `SensitivityAnalysis`. It supports serialization
to and from JSON format for easy persistence and loading of sensitivity
analysis configurations.

Typical usage example:

    from nodegsa.sa import SensitivityAnalysisConfig

    config = SensitivityAnalysisConfig.from_json("sa_config.json")
    config.shapley.n_perms = 200
    config.to_json("updated_sa_config.json")
"""

from dataclasses import dataclass, asdict, field
from ..config.metric import MetricConfig
import json


@dataclass
class SensitivityAnalysisProblem:
    """Problem definition for sensitivity analysis using SALib.

    Attributes:
        num_vars (int): Number of variables (parameters) in the problem.
            Must match the length of names and bounds lists.
        names (list[str]): Parameter names, one per variable.
        bounds (list[list[float]]): Two numbers per parameter. For uniform
            inputs these are [min, max], for normal inputs [mean, std].
        dists (list[str], optional): SALib distribution names ('unif',
            'norm', ...). None means uniform for every parameter.

    Example:
        ```python
        problem = SensitivityAnalysisProblem(
            num_vars=2,
            names=["u0[1]", "u0[2]"],
            bounds=[[2.0, 0.1], [0.0, 0.1]],
            dists=["norm", "norm"]
        )
        problem_dict = problem.to_dict()
        ```
    """

    num_vars: int
    names: list[str]
    bounds: list[list[float]]
    dists: list[str] = None

    def __post_init__(self):
        if len(self.names) != self.num_vars or len(self.bounds) != self.num_vars:
            raise ValueError(
                f"Problem with {self.num_vars} variables got {len(self.names)} "
                f"names and {len(self.bounds)} bounds"
            )

    def to_dict(self):
        """Convert the problem definition to the dictionary SALib expects.

        Returns:
            dict: Keys 'num_vars', 'names', 'bounds' and, when set, 'dists'.
        """
        data = asdict(self)
        if self.dists is None:
            data.pop("dists")
        return data


@dataclass
class ShapleyConfig:
    """Settings of the Shapley effect estimator.

    Attributes:
        n_perms (int): Number of random permutations, or -1 for all of them.
        n_var (int): Samples used to estimate the output variance.
        n_outer (int): Conditioning samples per cost evaluation.
        n_inner (int): Conditional samples per conditioning sample.
        ci_level (float): Confidence level of the reported intervals.
    """

    n_perms: int = 100
    n_var: int = 1000
    n_outer: int = 100
    n_inner: int = 3
    ci_level: float = 0.95


@dataclass
class SensitivityAnalysisConfig:
    """Configuration class for sensitivity analysis execution settings.

    The inputs are the entries of the trained state vector. Each one gets a
    marginal centred on its trained value with spread `scale * max(|value|, 1e-3)`
    and all of them share one pairwise `correlation` through a Gaussian copula.

    Attributes:
        method (str): 'shapley' or 'sobol'.
        shapley (ShapleyConfig): Shapley estimator settings.
        samples (int): Base sample size of the Sobol design. Should be a
            power of 2.
        marginal (str): 'normal' or 'uniform' marginals around the trained
            values.
        scale (float): Relative spread of every marginal.
        correlation (float): Common pairwise correlation of the inputs. Must
            be 0 for the Sobol method.
        seed (int): Seed of every random draw.
        metric (MetricConfig, optional): Fit metrics reported for the
            trained model.
        top (int): Number of inputs shown in the effect plot.

    Example:
        ```python
        config = SensitivityAnalysisConfig(
            method="shapley",
            shapley=ShapleyConfig(n_perms=50, n_outer=50),
            correlation=0.09,
        )
        ```
    """

    method: str = "shapley"
    shapley: ShapleyConfig = field(default_factory=ShapleyConfig)
    samples: int = 1024
    marginal: str = "normal"
    scale: float = 0.05
    correlation: float = 0.0
    seed: int = 42
    metric: MetricConfig = None
    top: int = 50

    @classmethod
    def from_json(cls, infile: str):
        """Create a SensitivityAnalysisConfig instance from a JSON file.

        Nested 'shapley' and 'metric' dictionaries are converted to their
        dataclasses.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            TypeError: If the file contains unknown keys.
        """

        with open(infile, "r") as f:
            data = json.load(f)

        # Convert nested dictionaries to proper dataclass instances
        if "shapley" in data:
            data["shapley"] = ShapleyConfig(**data["shapley"])
        if data.get("metric") is not None:
            data["metric"] = MetricConfig.from_dict(data["metric"])
        return cls(**data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a new JSON file.

        Raises:
            FileExistsError: If the specified file already exists.
        """
        data = {
            "method": self.method,
            "shapley": asdict(self.shapley),
            "samples": self.samples,
            "marginal": self.marginal,
            "scale": self.scale,
            "correlation": self.correlation,
            "seed": self.seed,
            "metric": self.metric.to_dict() if self.metric is not None else None,
            "top": self.top,
        }
        with open(outfile, "+x") as f:
            json.dump(data, f, indent=4)
