"""
# Metric Configuration

This module provides the configuration class that groups fit metrics with
the direction in which each one improves.

## Classes

- `MetricConfig`: Main configuration class for organizing metrics and modes

## Example Usage

```python
from nodegsa.config.metric import MetricConfig

config = MetricConfig.from_dict({
    'metrics': ['rmse', 'r2', 'nse'],
    'modes': ['min', 'max', 'max'],
    'params': ['u1', 'u2', 'u1.nse']
})

for metric, mode in zip(config.metrics, config.modes):
    print(f"{metric.name}: {mode.value}")
```
"""

from nodegsa.utils.metric import Metric, Mode
from dataclasses import dataclass


@dataclass
class MetricConfig:
    """
    Configuration for fit metrics and their modes.

    Attributes:
        metrics (list[Metric]): List of metric instances for evaluation.
        modes (list[Mode]): Mode ('min' or 'max') for each metric.
    """
    metrics: list[Metric]
    modes: list[Mode]

    @classmethod
    def from_dict(cls, data: dict):
        """
        Create a MetricConfig from a dictionary specification.

        Args:
            data (dict): Configuration dictionary with keys:
                - 'params' (list[str]): State names for each metric, optionally
                  suffixed ('u1.late') to keep metric names unique
                - 'metrics' (list[str]): Metric type names (e.g., 'rmse', 'r2')
                - 'modes' (list[str]): Modes ('min' or 'max')

        Returns:
            MetricConfig: Configured instance with metrics and modes.

        Raises:
            ValueError: If the three lists differ in length, or a metric or
                mode name is unknown.
        """
        params = data.get("params", [])
        metrics = data.get("metrics", [])
        modes = data.get("modes", [])
        if not len(params) == len(metrics) == len(modes):
            raise ValueError(
                "'params', 'metrics' and 'modes' must have the same length"
            )
        metrics = [Metric.from_name(m, p) for m, p in zip(metrics, params)]
        modes = [Mode.from_name(m) for m in modes]
        return cls(metrics=metrics, modes=modes)

    def to_dict(self) -> dict:
        return {
            "params": [metric.name for metric in self.metrics],
            "metrics": [type(metric).__name__.lower() for metric in self.metrics],
            "modes": [mode.value for mode in self.modes],
        }
