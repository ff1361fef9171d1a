"""
# Results Management

This module provides data structures for storing and serializing the
outputs of sensitivity analyses and Monte Carlo propagation.

## Type Aliases

- `EvalResults`: Dictionary mapping metric names to computed values

## Classes

- `ShapleyResult`: Shapley effects with standard errors and confidence bounds
- `SobolResult`: First- and total-order Sobol indices with confidence widths
- `StatsResults`: Collection of statistical summaries from Monte Carlo simulations

## Example Usage

```python
from nodegsa.utils.results import ShapleyResult

result = ShapleyResult.from_json("sa_results/shapley.json")
print(result.top(10))
result.to_frame().to_csv("shapley.csv", index=False)
```
"""

from dataclasses import dataclass, asdict, field
import pandas as pd
import numpy as np
import json
import os


EvalResults = dict[str, float]
"""Type alias for evaluation results dictionary mapping metric names to values."""


@dataclass
class ShapleyResult:
    """
    Shapley effects of every input on the variance of a scalar output.

    The four vectors are parallel: entry i of each refers to input i.

    Attributes:
        shapley_effects (np.ndarray): Estimated Shapley effect per input.
            Effects sum to one.
        std_errors (np.ndarray): Standard error of each estimate.
        ci_lower (np.ndarray): Lower confidence bound per input.
        ci_upper (np.ndarray): Upper confidence bound per input.
        names (list[str], optional): Input labels.
        var_y (float): Estimated total output variance.
        method (str): 'exact' or 'random' permutation scheme.
        n_perms (int): Number of permutations used.

    Raises:
        ValueError: If the vectors (and names, when given) differ in length.
    """
    shapley_effects: np.ndarray
    std_errors: np.ndarray
    ci_lower: np.ndarray
    ci_upper: np.ndarray
    names: list[str] = None
    var_y: float = float("nan")
    method: str = "random"
    n_perms: int = 0

    def __post_init__(self):
        self.shapley_effects = np.asarray(self.shapley_effects, dtype=float)
        self.std_errors = np.asarray(self.std_errors, dtype=float)
        self.ci_lower = np.asarray(self.ci_lower, dtype=float)
        self.ci_upper = np.asarray(self.ci_upper, dtype=float)

        lengths = {
            len(self.shapley_effects),
            len(self.std_errors),
            len(self.ci_lower),
            len(self.ci_upper),
        }
        if len(lengths) != 1:
            raise ValueError("Shapley result vectors must all have the same length")
        if self.names is not None and len(self.names) != len(self.shapley_effects):
            raise ValueError(
                f"Got {len(self.names)} names for {len(self.shapley_effects)} effects"
            )
        if self.names is None:
            self.names = [f"x{i + 1}" for i in range(len(self.shapley_effects))]
        self.names = list(self.names)

    def __len__(self):
        return len(self.shapley_effects)

    def to_frame(self) -> pd.DataFrame:
        """One row per input with effect, standard error and bounds."""
        return pd.DataFrame({
            "name": self.names,
            "shapley_effect": self.shapley_effects,
            "std_error": self.std_errors,
            "ci_lower": self.ci_lower,
            "ci_upper": self.ci_upper,
        })

    def top(self, k: int) -> pd.DataFrame:
        """The k inputs with the largest effects, sorted descending."""
        return self.to_frame().nlargest(k, "shapley_effect").reset_index(drop=True)

    def to_dict(self):
        data = asdict(self)
        for key in ("shapley_effects", "std_errors", "ci_lower", "ci_upper"):
            data[key] = data[key].tolist()
        data["var_y"] = float(self.var_y)
        return data

    def to_json(self, outfile: str):
        """
        Save the result to a JSON file.

        Note:
            Uses the "+x" mode to create a new file, will fail if file already exists.
        """
        with open(outfile, "+x") as f:
            json.dump(self.to_dict(), f, indent=4)

    @classmethod
    def from_json(cls, infile: str):
        with open(infile, "r") as f:
            data = json.load(f)
        return cls(**data)


@dataclass
class SobolResult:
    """
    First- and total-order Sobol indices computed with SALib.

    Attributes:
        first_order (np.ndarray): S1 per input, clipped to [0, 1].
        first_order_conf (np.ndarray): Confidence half-width of S1.
        total_order (np.ndarray): ST per input, clipped to [0, 1].
        total_order_conf (np.ndarray): Confidence half-width of ST.
        names (list[str]): Input labels.
    """
    first_order: np.ndarray
    first_order_conf: np.ndarray
    total_order: np.ndarray
    total_order_conf: np.ndarray
    names: list[str] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "name": self.names,
            "S1": self.first_order,
            "S1_conf": self.first_order_conf,
            "ST": self.total_order,
            "ST_conf": self.total_order_conf,
        })


class StatsResults(dict[str, pd.DataFrame]):
    """
    Collection of statistical summary DataFrames from Monte Carlo simulations.

    Each key is a statistic ('mean', 'ci_low', ...) and each value is a
    DataFrame with one row per time point and one column per trajectory column.

    Example:
        ```python
        stats = sim.analyze(results, index_columns=["t"])
        stats.save("/results/monte_carlo/")
        band = (stats["ci_low"]["u1"], stats["ci_high"]["u1"])
        ```
    """

    def save(self, directory: str):
        """
        Save all statistical DataFrames to CSV files in the specified directory.

        Each statistic is saved as '{key}.csv'. The directory must exist;
        existing files with the same names are overwritten.
        """
        for stat, data in self.items():
            data.to_csv(os.path.join(directory, f"{stat}.csv"), index=False)
