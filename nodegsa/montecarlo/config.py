"""Configuration classes for Monte Carlo simulation settings.

This module provides the configuration for propagating parameter uncertainty
of a trained neural ODE to its trajectories: the marginal distribution of
each sampled parameter, their optional correlation, the trajectory columns
to keep and the execution settings. It supports serialization to and from
JSON format.

Typical usage example:

    from nodegsa.montecarlo import MonteCarloConfig

    config = MonteCarloConfig.from_json("mc_config.json")
    config.num_samples = 2048
    config.to_json("updated_config.json")
"""

from ..config.space import SpaceConfig
from ..utils.distributions import MARGINALS

import json
from dataclasses import dataclass


@dataclass
class MonteCarloConfig:
    """Configuration class for Monte Carlo simulation settings.

    Attributes:
        space (SpaceConfig, optional): Parameter names (as in
            `NeuralODEModel.names`) with their marginal distributions.
            Parameters not listed keep their trained values. Defaults to None.
        outputs (list[str], optional): State columns to keep from every
            trajectory. None keeps all. Defaults to None.
        num_worker (int): Number of worker threads. Defaults to 4.
        num_samples (int): Number of Monte Carlo samples. Defaults to 128.
        correlation (float | list[list[float]], optional): Dependence of the
            sampled parameters through a Gaussian copula, either one common
            pairwise correlation or a full correlation matrix in `space`
            order. None samples independently. Defaults to None.

    Example:
        ```python
        config = MonteCarloConfig(
            space=SpaceConfig.from_dict(MARGINALS, {
                "u0[1]": ["normal", [2.0, 0.05]],
                "u0[2]": ["normal", [0.0, 0.05]],
            }),
            outputs=["u1", "u2"],
            num_samples=256,
            correlation=0.5,
        )
        config.to_json("mc_config.json")
        ```
    """

    space: SpaceConfig = None
    outputs: list[str] = None
    num_worker: int = 4
    num_samples: int = 128
    correlation: float | list[list[float]] = None

    @classmethod
    def from_json(cls, infile: str):
        """Create a MonteCarloConfig instance from a JSON file.

        Space entries are `[distribution, parameters]` pairs whose names are
        mapped to SciPy factories through `MARGINALS` ("normal", "truncnorm",
        "uniform").

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            ValueError: If a distribution name is unknown.
        """
        with open(infile, "r") as f:
            data = json.load(f)

        # Convert space configuration using distribution mapping
        if data.get('space') is not None:
            data['space'] = SpaceConfig.from_dict(MARGINALS, data['space'])
        return cls(**data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a new JSON file.

        Raises:
            FileExistsError: If the specified file already exists.
        """
        data = {
            "space": self.space.to_dict(MARGINALS) if self.space is not None else None,
            "outputs": self.outputs,
            "num_worker": self.num_worker,
            "num_samples": self.num_samples,
            "correlation": self.correlation,
        }
        with open(outfile, "+x") as f:
            json.dump(data, f)
