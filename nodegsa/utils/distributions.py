"""
# Marginal Distributions

This module provides factories for the frozen SciPy distributions used as
marginals of the input distribution in sensitivity analysis and Monte Carlo
propagation. Each factory takes plain floats so that marginals can be
declared in JSON configuration files as `[name, [params...]]`.

## Functions

- `get_scipy_truncated_normal`: Create SciPy truncated normal distribution
- `get_scipy_normal`: Create SciPy normal distribution
- `get_scipy_uniform`: Create SciPy uniform distribution
- `get_marginal`: Look up a factory by name and build the marginal

## Example Usage

```python
from nodegsa.utils.distributions import get_scipy_normal, get_marginal

# Normal marginal around a trained weight
dist = get_scipy_normal(loc=0.31, scale=0.05)
samples = dist.rvs(size=1000)

# Same thing from a configuration entry
dist = get_marginal("normal", [0.31, 0.05])
```
"""

from scipy.stats import (
    truncnorm,
    norm,
    uniform
)


def get_scipy_truncated_normal(loc=0.0, scale=1.0, a=-1e12, b=1e12):
    """
    Create a SciPy truncated normal distribution.

    Convenience function for creating truncated normal distributions
    for parameters with physical constraints, such as positive initial
    conditions.

    Args:
        loc (float, optional): Mean of the underlying normal. Defaults to 0.0.
        scale (float, optional): Standard deviation. Defaults to 1.0.
        a (float, optional): Lower truncation bound. Defaults to -1e12.
        b (float, optional): Upper truncation bound. Defaults to 1e12.

    Returns:
        scipy.stats.truncnorm: Configured truncated normal distribution.

    Example:
        ```python
        dist = get_scipy_truncated_normal(loc=2.0, scale=0.1, a=0.0, b=4.0)
        samples = dist.rvs(size=1000)
        ```
    """
    a_scaled = (a - loc) / scale
    b_scaled = (b - loc) / scale
    return truncnorm(a=a_scaled, b=b_scaled, loc=loc, scale=scale)


def get_scipy_normal(loc=0.0, scale=1.0):
    """
    Create a SciPy normal distribution.

    Args:
        loc (float, optional): Mean of the distribution. Defaults to 0.0.
        scale (float, optional): Standard deviation. Defaults to 1.0.

    Returns:
        scipy.stats.norm: Configured normal distribution.
    """
    return norm(loc=loc, scale=scale)


def get_scipy_uniform(a=0.0, b=1.0):
    """
    Create a SciPy uniform distribution.

    Args:
        a (float, optional): Lower bound of the interval. Defaults to 0.0.
        b (float, optional): Upper bound of the interval. Defaults to 1.0.

    Returns:
        scipy.stats.uniform: Configured uniform distribution.

    Note:
        SciPy's uniform distribution is parameterized as uniform(loc, scale)
        where scale = b - a, so we transform the [a, b] interface accordingly.
    """
    return uniform(loc=a, scale=b - a)


MARGINALS = {
    "normal": get_scipy_normal,
    "truncnorm": get_scipy_truncated_normal,
    "uniform": get_scipy_uniform,
}
"""Mapping of marginal names used in configuration files to factories."""


def get_marginal(name: str, params):
    """
    Build a frozen marginal distribution from its configuration name.

    Args:
        name (str): One of the keys of `MARGINALS` (case-insensitive).
        params (Sequence[float]): Positional parameters for the factory.

    Returns:
        scipy.stats.rv_frozen: The frozen distribution.

    Raises:
        ValueError: If the name is not a known marginal.
    """
    factory = MARGINALS.get(name.lower())
    if factory is None:
        raise ValueError(f"Unknown distribution type: {name}")
    return factory(*params)
