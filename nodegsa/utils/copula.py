"""
# Gaussian Copula Input Distributions

This module provides the dependence layer used to describe correlated
uncertainty in neural ODE parameters. Following Sklar's theorem, a joint
distribution is assembled from independent marginals (frozen SciPy
distributions) and a Gaussian copula that carries the dependence structure.

All conditional sampling happens in normal-score space: an input value `x_i`
is mapped to `z_i = Φ⁻¹(F_i(x_i))`, the Gaussian conditional distribution is
applied to the scores, and the result is mapped back through the marginal
quantile functions.

## Functions

- `equicorrelation`: Correlation matrix with a common off-diagonal value

## Classes

- `GaussianCopula`: Gaussian copula parameterized by a correlation matrix
- `CopulaDistribution`: Joint distribution from marginals and a copula

## Example Usage

```python
import numpy as np
from nodegsa.utils.copula import (
    GaussianCopula, CopulaDistribution, equicorrelation
)
from nodegsa.utils.distributions import get_scipy_normal

theta = np.array([2.0, 0.0, 0.31])
marginals = [get_scipy_normal(loc=v, scale=0.05) for v in theta]
copula = GaussianCopula(equicorrelation(len(theta), 0.09))
dist = CopulaDistribution(marginals, copula)

rng = np.random.default_rng(42)
X = dist.sample(1000, rng)  # (1000, 3)
```
"""

import numpy as np
from scipy.stats import norm
from scipy.special import ndtri
from scipy.linalg import cho_factor, cho_solve

# Keeps quantile transforms finite at the edges of (0, 1)
_EPS = 1e-12


def equicorrelation(d: int, rho: float) -> np.ndarray:
    """
    Build a d x d correlation matrix with every off-diagonal entry equal to rho.

    Args:
        d (int): Dimension of the matrix.
        rho (float): Common correlation. Must satisfy -1/(d-1) < rho < 1
            so that the matrix is positive definite.

    Returns:
        np.ndarray: Correlation matrix of shape (d, d).

    Raises:
        ValueError: If d < 1 or rho is outside the positive definite range.
    """
    if d < 1:
        raise ValueError(f"Dimension must be positive, got {d}")
    lower = -1.0 / (d - 1) if d > 1 else -np.inf
    if not lower < rho < 1.0:
        raise ValueError(
            f"Equicorrelation rho={rho} is not positive definite for d={d}"
        )
    corr = np.full((d, d), float(rho))
    np.fill_diagonal(corr, 1.0)
    return corr


def _cholesky(cov: np.ndarray, max_tries: int = 6) -> np.ndarray:
    """Lower Cholesky factor, adding diagonal jitter for near-singular covariances."""
    cov = 0.5 * (cov + cov.T)
    jitter = 0.0
    scale = max(float(np.mean(np.diag(cov))), 1.0) if cov.size else 1.0
    for attempt in range(max_tries):
        try:
            return np.linalg.cholesky(cov + jitter * np.eye(cov.shape[0]))
        except np.linalg.LinAlgError:
            jitter = scale * 10.0 ** (attempt - 12)
    raise ValueError("Covariance matrix is not positive semi-definite")


class GaussianCopula:
    """
    Gaussian copula defined by a correlation matrix.

    Attributes:
        corr (np.ndarray): Correlation matrix of shape (d, d).
        dim (int): Number of variables.
    """

    def __init__(self, corr):
        corr = np.asarray(corr, dtype=float)
        if corr.ndim != 2 or corr.shape[0] != corr.shape[1]:
            raise ValueError(f"Correlation matrix must be square, got shape {corr.shape}")
        if not np.allclose(corr, corr.T):
            raise ValueError("Correlation matrix must be symmetric")
        if not np.allclose(np.diag(corr), 1.0):
            raise ValueError("Correlation matrix must have a unit diagonal")
        try:
            self._chol = np.linalg.cholesky(corr)
        except np.linalg.LinAlgError:
            raise ValueError("Correlation matrix must be positive definite")

        self.corr = corr
        self.dim = corr.shape[0]

    def is_independent(self) -> bool:
        """True when the copula is the independence copula."""
        return np.allclose(self.corr, np.eye(self.dim))

    def sample_normal(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw n correlated standard normal score vectors, shape (n, d)."""
        return rng.standard_normal((n, self.dim)) @ self._chol.T

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw n points of the copula on the unit hypercube, shape (n, d)."""
        return norm.cdf(self.sample_normal(n, rng))

    def from_uniform(self, u: np.ndarray) -> np.ndarray:
        """
        Correlate independent uniforms, such as a quasi-random design.

        Args:
            u (np.ndarray): Independent uniforms of shape (n, d).

        Returns:
            np.ndarray: Uniforms of shape (n, d) with this copula's dependence.
        """
        z = ndtri(np.clip(u, _EPS, 1 - _EPS))
        return norm.cdf(z @ self._chol.T)

    def conditional_normal(
        self,
        free: np.ndarray,
        given: np.ndarray,
        z_given: np.ndarray,
        n_inner: int,
        rng: np.random.Generator
    ) -> np.ndarray:
        """
        Sample normal scores of `free` indices conditioned on scores at `given`.

        For each of the n_outer conditioning rows of `z_given`, draws n_inner
        samples from N(Σ_fg Σ_gg⁻¹ z_g, Σ_ff - Σ_fg Σ_gg⁻¹ Σ_gf).

        Args:
            free (np.ndarray): Indices to sample.
            given (np.ndarray): Conditioning indices.
            z_given (np.ndarray): Normal scores at `given`, shape (n_outer, len(given)).
            n_inner (int): Number of conditional samples per conditioning row.
            rng (np.random.Generator): Random number generator.

        Returns:
            np.ndarray: Scores of shape (n_outer, n_inner, len(free)).
        """
        free = np.asarray(free, dtype=int)
        given = np.asarray(given, dtype=int)
        n_outer = z_given.shape[0]
        k = len(free)

        s_ff = self.corr[np.ix_(free, free)]
        eps = rng.standard_normal((n_outer, n_inner, k))

        if len(given) == 0:
            return eps @ _cholesky(s_ff).T

        s_gg = self.corr[np.ix_(given, given)]
        s_fg = self.corr[np.ix_(free, given)]

        # A = Σ_fg Σ_gg⁻¹
        A = cho_solve(cho_factor(s_gg), s_fg.T).T
        mean = z_given @ A.T  # (n_outer, k)
        cov = s_ff - A @ s_fg.T

        return mean[:, None, :] + eps @ _cholesky(cov).T


class CopulaDistribution:
    """
    Joint input distribution built from marginals and a Gaussian copula.

    Attributes:
        marginals (list): Frozen SciPy distributions, one per input.
        copula (GaussianCopula | None): Dependence structure. None means
            independent inputs.
        dim (int): Number of inputs.

    Example:
        ```python
        dist = CopulaDistribution(
            [get_scipy_normal(0, 1), get_scipy_uniform(0, 1)],
            GaussianCopula([[1.0, 0.5], [0.5, 1.0]])
        )
        X = dist.sample(100, np.random.default_rng(0))
        ```
    """

    def __init__(self, marginals: list, copula: GaussianCopula = None):
        if copula is not None and copula.dim != len(marginals):
            raise ValueError(
                f"Copula dimension {copula.dim} does not match "
                f"{len(marginals)} marginals"
            )
        self.marginals = list(marginals)
        self.copula = copula
        self.dim = len(self.marginals)

    def is_independent(self) -> bool:
        return self.copula is None or self.copula.is_independent()

    def transform_uniform(self, u: np.ndarray) -> np.ndarray:
        """Map uniforms of shape (..., d) through the marginal quantile functions."""
        u = np.clip(u, _EPS, 1 - _EPS)
        x = np.empty_like(u, dtype=float)
        for i, marginal in enumerate(self.marginals):
            x[..., i] = marginal.ppf(u[..., i])
        return x

    def to_normal_scores(self, x: np.ndarray, idx=None) -> np.ndarray:
        """
        Map inputs to normal scores z = Φ⁻¹(F(x)).

        Args:
            x (np.ndarray): Inputs of shape (..., len(idx)).
            idx (Sequence[int], optional): Which marginals the columns of x
                belong to. Defaults to all inputs.
        """
        idx = range(self.dim) if idx is None else idx
        z = np.empty_like(x, dtype=float)
        for col, i in enumerate(idx):
            u = self.marginals[i].cdf(x[..., col])
            z[..., col] = ndtri(np.clip(u, _EPS, 1 - _EPS))
        return z

    def from_normal_scores(self, z: np.ndarray) -> np.ndarray:
        """Inverse of `to_normal_scores` for full input vectors."""
        return self.transform_uniform(norm.cdf(z))

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw n joint samples, shape (n, d)."""
        if self.copula is None:
            u = rng.random((n, self.dim))
        else:
            u = self.copula.sample(n, rng)
        return self.transform_uniform(u)

    def conditional_sample(
        self,
        free,
        given,
        x_given: np.ndarray,
        n_inner: int,
        rng: np.random.Generator
    ) -> np.ndarray:
        """
        Sample `free` inputs conditioned on fixed values of `given` inputs.

        Args:
            free (Sequence[int]): Indices of the inputs to resample.
            given (Sequence[int]): Indices of the fixed inputs.
            x_given (np.ndarray): Fixed values, shape (n_outer, len(given)).
            n_inner (int): Conditional samples per fixed row.
            rng (np.random.Generator): Random number generator.

        Returns:
            np.ndarray: Full input vectors of shape (n_outer, n_inner, d)
                whose `given` coordinates equal x_given.
        """
        free = np.asarray(free, dtype=int)
        given = np.asarray(given, dtype=int)
        n_outer = x_given.shape[0]

        out = np.empty((n_outer, n_inner, self.dim))
        out[:, :, given] = x_given[:, None, :]

        if len(free) == 0:
            return out

        if self.is_independent():
            u = rng.random((n_outer, n_inner, len(free)))
        else:
            z_given = self.to_normal_scores(x_given, given)
            z_free = self.copula.conditional_normal(free, given, z_given, n_inner, rng)
            u = norm.cdf(z_free)

        u = np.clip(u, _EPS, 1 - _EPS)
        for col, i in enumerate(free):
            out[:, :, i] = self.marginals[i].ppf(u[:, :, col])

        return out

    def to_problem(self, names: list[str] = None) -> dict:
        """
        Build a SALib problem dictionary for independent normal/uniform inputs.

        Returns:
            dict: Problem with 'num_vars', 'names', 'bounds' and 'dists'.

        Raises:
            ValueError: If inputs are correlated or a marginal is neither
                normal nor uniform.
        """
        if not self.is_independent():
            raise ValueError("SALib problems require independent inputs")

        names = names or [f"x{i + 1}" for i in range(self.dim)]
        bounds, dists = [], []
        for name, marginal in zip(names, self.marginals):
            kind = getattr(getattr(marginal, "dist", None), "name", None)
            if kind == "norm":
                bounds.append([float(marginal.mean()), float(marginal.std())])
                dists.append("norm")
            elif kind == "uniform":
                low, high = marginal.support()
                bounds.append([float(low), float(high)])
                dists.append("unif")
            else:
                raise ValueError(f"Marginal of {name} ({kind}) is not supported by SALib")

        return {
            "num_vars": self.dim,
            "names": list(names),
            "bounds": bounds,
            "dists": dists,
        }
