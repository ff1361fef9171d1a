"""
# Fit Metrics

This module provides the metrics used to judge how well a neural ODE
trajectory reproduces the observed training series. Standard regression
metrics come from scikit-learn; the sum of squared errors is the training
loss itself and the Nash-Sutcliffe family is implemented here.

## Functions

- `sum_squared_error`: Sum of squared residuals (the training loss)
- `nash_sutcliffe_efficiency`: Nash-Sutcliffe model efficiency coefficient
- `normalized_nash_sutcliffe_efficiency`: Normalized Nash-Sutcliffe efficiency

## Classes

- `Metric`: Base metric class with name, output variable, and evaluation function
- `SSE`, `MSE`, `RMSE`, `R2`, `MAPE`, `MADE`, `NSE`, `NNSE`: Specific metrics
- `Mode`: Enumeration for optimization modes (min/max)

## Example Usage

```python
from nodegsa.utils.metric import Metric, Mode

rmse_u1 = Metric.from_name('rmse', 'u1')
r2_u2 = Metric.from_name('r2', 'u2.late')   # name 'u2.late', output 'u2'

score = rmse_u1.func(observed, predicted)
mode = Mode.from_name('min')
```
"""

from enum import Enum
import numpy as np
from dataclasses import dataclass
from typing import Callable

# Metrics
from sklearn.metrics import (
    mean_squared_error,
    r2_score,
    root_mean_squared_error,
    mean_absolute_percentage_error,
    median_absolute_error
)


def sum_squared_error(targets, predictions):
    """
    Sum of squared residuals.

    This is the loss minimized when fitting the neural ODE and the scalar
    output whose variance is decomposed by the sensitivity analysis.

    Formula:
        SSE = Σ(targets - predictions)²
    """
    return float(np.sum((np.asarray(targets) - np.asarray(predictions)) ** 2))


def nash_sutcliffe_efficiency(targets, predictions):
    """
    Nash-Sutcliffe model efficiency coefficient.

    NSE ranges from -∞ to 1, where 1 indicates perfect agreement and 0 means
    the model is as accurate as the mean of the observations.

    Formula:
        NSE = 1 - (Σ(targets - predictions)²) / (Σ(targets - mean(targets))²)

    Reference:
        Nash, J. E. and Sutcliffe, J. V. (1970). River flow forecasting through
        conceptual models part I. Journal of Hydrology, 10(3), 282-290.
    """
    targets = np.asarray(targets)
    predictions = np.asarray(predictions)
    return 1 - (np.sum((targets - predictions) ** 2) / np.sum((targets - np.mean(targets)) ** 2))


def normalized_nash_sutcliffe_efficiency(targets, predictions):
    """
    Normalized Nash-Sutcliffe model efficiency coefficient.

    Maps NSE onto (0, 1], with 0.5 meaning as accurate as the observation mean.

    Formula:
        NNSE = 1 / (2 - NSE)
    """
    return 1 / (2 - nash_sutcliffe_efficiency(targets, predictions))


@dataclass
class Metric:
    """
    Base class for evaluation metrics.

    Attributes:
        name (str): Unique identifier for the metric.
        output_name (str): Name of the state variable to evaluate.
        func (Callable): Function computing the metric as func(targets, predictions).
    """
    name: str
    output_name: str
    func: Callable

    @staticmethod
    def from_name(metric_name: str, optim_name: str) -> "Metric":
        """
        Create a Metric instance from string identifiers.

        Args:
            metric_name (str): Type of metric to create. One of 'sse', 'mse',
                'rmse', 'r2', 'mape', 'made', 'nse', 'nnse'.
            optim_name (str): Metric name, 'output_name' or 'output_name.suffix'.
                The suffix allows several metrics on the same state variable.

        Returns:
            Metric: Appropriate metric subclass instance.

        Raises:
            ValueError: If metric_name is not recognized.

        Example:
            ```python
            m = Metric.from_name('rmse', 'u1.late')
            # m.name == 'u1.late', m.output_name == 'u1'
            ```
        """
        mapping = {
            "sse": SSE,
            "mse": MSE,
            "rmse": RMSE,
            "r2": R2,
            "mape": MAPE,
            "made": MADE,
            "nnse": NNSE,
            "nse": NSE
        }

        # Get metric class
        metric_cls = mapping.get(metric_name.lower())
        if metric_cls is None:
            raise ValueError(f"Unknown metric name: {metric_name}")

        # Names must be unique, so 'u1.A' and 'u1.B' both evaluate state 'u1'
        output_name = optim_name
        if (i := optim_name.rfind(".")) != -1:
            output_name = optim_name[:i]

        return metric_cls(output_name, optim_name)


# Evaluation Metrics
class SSE(Metric):
    """Sum of squared errors. Lower is better."""
    def __init__(self, output_name: str, name: str = "sse"):
        super().__init__(name=name, output_name=output_name, func=sum_squared_error)


class MSE(Metric):
    """
    Mean Squared Error metric.

    Formula: MSE = (1/n) * Σ(target - prediction)²
    """
    def __init__(self, output_name: str, name: str = "mse"):
        super().__init__(name=name, output_name=output_name, func=mean_squared_error)


class RMSE(Metric):
    """
    Root Mean Squared Error metric. Has the same units as the state variable.

    Formula: RMSE = √((1/n) * Σ(target - prediction)²)
    """
    def __init__(self, output_name: str, name: str = "rmse"):
        super().__init__(name=name, output_name=output_name, func=root_mean_squared_error)


class R2(Metric):
    """
    R-squared (coefficient of determination) metric. Higher is better.

    Formula: R² = 1 - (SS_res / SS_tot)
    """
    def __init__(self, output_name: str, name: str = "r2"):
        super().__init__(name=name, output_name=output_name, func=r2_score)


class MAPE(Metric):
    """
    Mean Absolute Percentage Error metric.

    Note:
        Undefined when target values are zero. The spiral trajectory crosses
        zero, so prefer RMSE or NSE for it.
    """
    def __init__(self, output_name: str, name: str = "mape"):
        super().__init__(name=name, output_name=output_name, func=mean_absolute_percentage_error)


class MADE(Metric):
    """Median Absolute Error metric. Robust to outliers."""
    def __init__(self, output_name: str, name: str = "made"):
        super().__init__(name=name, output_name=output_name, func=median_absolute_error)


class NNSE(Metric):
    """Normalized Nash-Sutcliffe Efficiency metric, bounded in (0, 1]."""
    def __init__(self, output_name: str, name: str = "nnse"):
        super().__init__(name=name, output_name=output_name, func=normalized_nash_sutcliffe_efficiency)


class NSE(Metric):
    """Nash-Sutcliffe Efficiency metric, bounded in (-inf, 1]."""
    def __init__(self, output_name: str, name: str = "nse"):
        super().__init__(name=name, output_name=output_name, func=nash_sutcliffe_efficiency)


# Evaluation Modes
class Mode(str, Enum):
    """
    Enumeration for optimization modes.

    Values:
        MAX: Higher values are better (R², NSE)
        MIN: Lower values are better (RMSE, SSE)
    """
    MAX = "max"
    MIN = "min"

    @staticmethod
    def from_name(name: str) -> "Mode":
        """
        Create a Mode instance from a string name.

        Raises:
            ValueError: If name is not 'min' or 'max'.
        """
        try:
            return Mode(name.lower())
        except ValueError:
            raise ValueError(f"Unknown mode: {name}")
