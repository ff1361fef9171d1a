"""
# Utilities

This module provides utility functions and classes for working with metrics,
marginal distributions, copulas, and results management in the nodegsa package.

## Components

- **metric**: Fit metrics comparing neural ODE trajectories with observations
- **distributions**: SciPy marginal distribution factories
- **copula**: Gaussian copula and joint input distributions
- **results**: Data structures for Shapley, Sobol and Monte Carlo results

## Example Usage

```python
from nodegsa.utils.metric import Metric
from nodegsa.utils.distributions import get_scipy_normal
from nodegsa.utils.copula import CopulaDistribution, GaussianCopula, equicorrelation

rmse = Metric.from_name('rmse', 'u1')
dist = CopulaDistribution(
    [get_scipy_normal(0.0, 0.05) for _ in range(4)],
    GaussianCopula(equicorrelation(4, 0.09))
)
```
"""
