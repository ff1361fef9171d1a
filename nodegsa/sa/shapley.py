"""Shapley effects for models with correlated inputs.

Shapley effects attribute the variance of a scalar output Y = f(X) to the
inputs by averaging, over orderings of the inputs, the increase of the cost

    c(J) = E[Var(Y | X_{-J})]

when input j joins the set J of inputs placed before it. Unlike Sobol
indices, the attribution stays well defined when inputs are dependent, and
the effects always sum to one.

The estimator follows the Monte Carlo scheme of Song, Nelson & Staum:
every cost is estimated by fixing `n_outer` draws of the complementary
inputs X_{-J} and resampling X_J from its conditional distribution
`n_inner` times. Permutations are either all d! orderings ("exact") or
uniformly random ones ("random").

References:
    - Song, E., Nelson, B. L., & Staum, J. (2016). Shapley effects for global
      sensitivity analysis: Theory and computation. SIAM/ASA Journal on
      Uncertainty Quantification, 4(1), 1060-1083.
    - Owen, A. B. (2014). Sobol' indices and Shapley value. SIAM/ASA Journal
      on Uncertainty Quantification, 2(1), 245-251.

Typical usage example:

    from nodegsa.sa import Shapley, gsa

    result = gsa(model.get_loss_function(), Shapley(n_perms=100), dist, batch=True)
    print(result.top(10))
"""

import itertools
import logging
from typing import Callable

import numpy as np
from scipy.stats import norm
from tqdm import tqdm

from ..utils.copula import CopulaDistribution
from ..utils.results import ShapleyResult


class Shapley:
    """
    Monte Carlo estimator of Shapley effects.

    Attributes:
        n_perms (int): Number of random permutations, or -1 to enumerate all
            permutations of the inputs.
        n_var (int): Samples used to estimate Var(Y).
        n_outer (int): Conditioning samples of X_{-J} per cost estimate.
        n_inner (int): Conditional samples of X_J per conditioning sample.
        ci_level (float): Confidence level of the reported intervals.
        max_exact_dim (int): Largest input dimension the exact method accepts.
        seed (int | None): Seed of the random number generator. Every call
            to `analyze` starts from this seed.

    Raises:
        ValueError: If any setting is out of range.

    Example:
        ```python
        shapley = Shapley(n_perms=-1, n_var=2000, n_outer=200, n_inner=3, seed=0)
        result = shapley.analyze(lambda x: x[0] + 2 * x[1], dist)
        ```
    """

    def __init__(
        self,
        n_perms: int = -1,
        n_var: int = 1000,
        n_outer: int = 100,
        n_inner: int = 3,
        ci_level: float = 0.95,
        max_exact_dim: int = 8,
        seed: int = None,
    ):
        if n_perms != -1 and n_perms < 1:
            raise ValueError(f"n_perms must be -1 (exact) or positive, got {n_perms}")
        if n_var < 2:
            raise ValueError(f"n_var must be at least 2, got {n_var}")
        if n_outer < 1:
            raise ValueError(f"n_outer must be at least 1, got {n_outer}")
        if n_inner < 2:
            raise ValueError(f"n_inner must be at least 2, got {n_inner}")
        if not 0.0 < ci_level < 1.0:
            raise ValueError(f"ci_level must lie in (0, 1), got {ci_level}")

        self.n_perms = n_perms
        self.n_var = n_var
        self.n_outer = n_outer
        self.n_inner = n_inner
        self.ci_level = ci_level
        self.max_exact_dim = max_exact_dim
        self.seed = seed

    @property
    def method(self) -> str:
        return "exact" if self.n_perms == -1 else "random"

    def _permutations(self, d: int, rng: np.random.Generator) -> list[np.ndarray]:
        if self.method == "exact":
            if d > self.max_exact_dim:
                raise ValueError(
                    f"Exact Shapley effects need {d}! permutations; use n_perms > 0 "
                    f"for more than {self.max_exact_dim} inputs"
                )
            return [np.array(p) for p in itertools.permutations(range(d))]
        return [rng.permutation(d) for _ in range(self.n_perms)]

    @staticmethod
    def _evaluate(func: Callable, X: np.ndarray, batch: bool) -> np.ndarray:
        """Evaluate func on the rows of X, checking for one finite scalar per row."""
        n = X.shape[0]
        if batch:
            y = np.asarray(func(X), dtype=float)
            if y.size != n:
                raise ValueError(
                    f"Batched function returned {y.size} values for {n} input rows"
                )
            y = y.reshape(n)
        else:
            y = np.empty(n)
            for i, x in enumerate(X):
                out = np.asarray(func(x), dtype=float)
                if out.size != 1:
                    raise ValueError(
                        f"Function must return a scalar, got shape {out.shape}"
                    )
                y[i] = out.item()

        if not np.all(np.isfinite(y)):
            raise ValueError(
                f"Function returned {np.sum(~np.isfinite(y))} non-finite values"
            )
        return y

    def _costs(
        self,
        func: Callable,
        distribution: CopulaDistribution,
        perm: np.ndarray,
        batch: bool,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Estimates of c(perm[:j]) for j = 1..d-1, evaluated in one call."""
        d = len(perm)
        if d == 1:
            return np.empty(0)

        rows = []
        for j in range(1, d):
            free, given = perm[:j], perm[j:]
            x_given = distribution.sample(self.n_outer, rng)[:, given]
            rows.append(
                distribution.conditional_sample(free, given, x_given, self.n_inner, rng)
            )

        X = np.stack(rows).reshape(-1, d)
        y = self._evaluate(func, X, batch).reshape(d - 1, self.n_outer, self.n_inner)
        return y.var(axis=2, ddof=1).mean(axis=1)

    def analyze(
        self,
        func: Callable,
        distribution: CopulaDistribution,
        batch: bool = False,
        names: list[str] = None,
    ) -> ShapleyResult:
        """
        Estimate the Shapley effect of every input on the output of func.

        Args:
            func (Callable): Model. Maps one input vector of shape (d,) to a
                scalar, or with batch=True a matrix (n, d) to a vector (n,).
            distribution (CopulaDistribution): Joint input distribution.
            batch (bool): Whether func takes a matrix of inputs.
            names (list[str], optional): Input labels for the result.

        Returns:
            ShapleyResult: Effects, standard errors and confidence bounds.

        Raises:
            ValueError: If the exact method is requested for more than
                `max_exact_dim` inputs, names does not match the input
                dimension, the output variance is zero, or func returns
                non-finite or non-scalar values.
        """
        rng = np.random.default_rng(self.seed)
        d = distribution.dim
        if names is not None and len(names) != d:
            raise ValueError(f"Got {len(names)} names for {d} inputs")

        logging.info(f"Estimating output variance from {self.n_var} samples.")
        y = self._evaluate(func, distribution.sample(self.n_var, rng), batch)
        var_y = float(np.var(y, ddof=1))
        if not var_y > 0.0:
            raise ValueError("Output variance is zero, Shapley effects are undefined")

        perms = self._permutations(d, rng)
        m = len(perms)
        logging.info(
            f"Estimating Shapley effects of {d} inputs over {m} {self.method} permutations "
            f"({(d - 1) * self.n_outer * self.n_inner} evaluations each)."
        )

        sh = np.zeros(d)
        sh2 = np.zeros(d)
        for perm in tqdm(perms):
            # c(empty set) = 0 and c(all inputs) = Var(Y)
            costs = np.append(self._costs(func, distribution, perm, batch, rng), var_y)
            delta = np.diff(costs, prepend=0.0)
            sh[perm] += delta
            sh2[perm] += delta ** 2

        sh /= m
        sh2 /= m

        effects = sh / var_y
        std_errors = np.sqrt(np.maximum(sh2 - sh ** 2, 0.0) / m) / var_y
        z = norm.ppf(1.0 - (1.0 - self.ci_level) / 2.0)

        return ShapleyResult(
            shapley_effects=effects,
            std_errors=std_errors,
            ci_lower=effects - z * std_errors,
            ci_upper=effects + z * std_errors,
            names=names,
            var_y=var_y,
            method=self.method,
            n_perms=m,
        )


def gsa(
    func: Callable,
    method: Shapley,
    distribution: CopulaDistribution,
    batch: bool = False,
    **kwargs
):
    """
    Run a global sensitivity analysis method on func.

    Args:
        func (Callable): Model mapping inputs to a scalar output.
        method (Shapley | Sobol): Configured analysis method.
        distribution (CopulaDistribution): Joint input distribution.
        batch (bool): Whether func takes a matrix of inputs.
        **kwargs: Forwarded to `method.analyze` (e.g. names).

    Returns:
        ShapleyResult | SobolResult: The result of the chosen method.
    """
    return method.analyze(func, distribution, batch=batch, **kwargs)
